#!/usr/bin/env python3
"""
Cue Parser - Turns decoded cue sheet text into a structured sheet
Handles disc-level and per-track fields, FILE/TRACK/INDEX structure and timecodes
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from split_errors import CueParseError, CueSheetEmpty

logger = logging.getLogger(__name__)

FRAMES_PER_SECOND = 75

TOKEN_PATTERN = re.compile(r'"([^"]*)"|(\S+)')

# Directives whose single string argument is stored as a field of the current context
STRING_FIELDS = {
    'TITLE': 'title',
    'PERFORMER': 'performer',
    'SONGWRITER': 'songwriter',
}

REM_FIELDS = {
    'DATE': 'date',
    'GENRE': 'genre',
    'COMMENT': 'comment',
    'DISCID': 'discid',
    'COMPOSER': 'composer',
    'REPLAYGAIN_ALBUM_GAIN': 'replaygain_album_gain',
    'REPLAYGAIN_ALBUM_PEAK': 'replaygain_album_peak',
    'REPLAYGAIN_TRACK_GAIN': 'replaygain_track_gain',
    'REPLAYGAIN_TRACK_PEAK': 'replaygain_track_peak',
}

IGNORED_DIRECTIVES = {'FLAGS', 'PREGAP', 'POSTGAP', 'CDTEXTFILE'}


class ParseContext(Enum):
    """Which part of the sheet tag directives currently apply to"""
    DISC = "disc"
    TRACK = "track"


def timecode_to_frames(minutes: int, seconds: int, frames: int) -> int:
    """Convert MM:SS:FF to a count of 1/75 second frames"""
    return (minutes * 60 + seconds) * FRAMES_PER_SECOND + frames


@dataclass(frozen=True)
class Timecode:
    """A cue sheet position in minutes, seconds and frames"""
    minutes: int
    seconds: int
    frames: int

    @property
    def total_frames(self) -> int:
        return timecode_to_frames(self.minutes, self.seconds, self.frames)

    def __str__(self) -> str:
        return f"{self.minutes:02d}:{self.seconds:02d}:{self.frames:02d}"


def parse_timecode(text: str) -> Timecode:
    """Parse an MM:SS:FF timecode, raising ValueError when malformed"""
    parts = text.split(':')
    if len(parts) != 3 or not all(part.isdigit() for part in parts):
        raise ValueError(f"malformed timecode {text!r}, expected MM:SS:FF")

    minutes, seconds, frames = (int(part) for part in parts)
    if seconds >= 60:
        raise ValueError(f"timecode {text!r} has {seconds} seconds (must be below 60)")
    if frames >= FRAMES_PER_SECOND:
        raise ValueError(f"timecode {text!r} has {frames} frames (must be below {FRAMES_PER_SECOND})")
    return Timecode(minutes, seconds, frames)


@dataclass(frozen=True)
class CueIndex:
    """One INDEX entry of a track"""
    number: int
    timecode: Timecode


@dataclass(frozen=True)
class CueTrack:
    """A TRACK block with its own fields and indexes"""
    number: int
    fields: Dict[str, str]
    indexes: Tuple[CueIndex, ...]
    line_number: int = 0

    def index(self, number: int) -> Optional[Timecode]:
        for entry in self.indexes:
            if entry.number == number:
                return entry.timecode
        return None

    @property
    def start(self) -> Timecode:
        """The INDEX 01 playback start"""
        timecode = self.index(1)
        if timecode is None:
            raise ValueError(f"track {self.number} has no INDEX 01")
        return timecode

    @property
    def pregap(self) -> Optional[Timecode]:
        """The INDEX 00 pre-gap start, if any"""
        return self.index(0)


@dataclass(frozen=True)
class CueSheet:
    """A parsed cue sheet: disc fields plus the ordered tracks"""
    fields: Dict[str, str]
    tracks: Tuple[CueTrack, ...]
    audio_file: Optional[str] = None
    file_type: Optional[str] = None


@dataclass
class _TrackBuilder:
    number: int
    line_number: int
    line: str
    fields: Dict[str, str] = field(default_factory=dict)
    indexes: List[CueIndex] = field(default_factory=list)

    def build(self) -> CueTrack:
        if not any(entry.number == 1 for entry in self.indexes):
            raise CueParseError(f"track {self.number} has no INDEX 01", self.line_number, self.line)
        return CueTrack(self.number, dict(self.fields), tuple(self.indexes), self.line_number)


def tokenize(line: str) -> List[str]:
    """Split a cue line into its keyword and arguments, stripping quotes"""
    tokens = []
    for match in TOKEN_PATTERN.finditer(line):
        quoted, bare = match.groups()
        if bare is not None:
            if '"' in bare:
                raise ValueError("unbalanced quotes")
            tokens.append(bare)
        else:
            tokens.append(quoted)
    return tokens


def parse_cue(text: str) -> CueSheet:
    """
    Parse decoded cue sheet text.

    Tag directives apply to the disc until the first TRACK and to the most
    recent TRACK afterwards. Unknown directives are ignored. Any structural
    problem raises CueParseError with the offending line.
    """
    text = text.lstrip('\ufeff')

    context = ParseContext.DISC
    disc_fields: Dict[str, str] = {}
    tracks: List[CueTrack] = []
    current: Optional[_TrackBuilder] = None
    audio_file: Optional[str] = None
    file_type: Optional[str] = None

    for line_number, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue

        try:
            tokens = tokenize(line)
            keyword, args = tokens[0].upper(), tokens[1:]
            fields = disc_fields if context is ParseContext.DISC else current.fields

            if keyword in STRING_FIELDS:
                if not args:
                    raise ValueError(f"{keyword} requires a value")
                fields[STRING_FIELDS[keyword]] = ' '.join(args)

            elif keyword == 'REM':
                if len(args) >= 2 and args[0].upper() in REM_FIELDS:
                    fields[REM_FIELDS[args[0].upper()]] = ' '.join(args[1:])
                else:
                    logger.debug(f"Line {line_number}: ignoring comment: {line.strip()}")

            elif keyword == 'CATALOG':
                if not args:
                    raise ValueError("CATALOG requires a value")
                if context is ParseContext.TRACK:
                    logger.debug(f"Line {line_number}: ignoring CATALOG inside track {current.number}")
                else:
                    disc_fields['catalog'] = args[0]

            elif keyword == 'ISRC':
                if not args:
                    raise ValueError("ISRC requires a value")
                if context is ParseContext.DISC:
                    logger.debug(f"Line {line_number}: ignoring ISRC outside of a track")
                else:
                    current.fields['isrc'] = args[0]

            elif keyword == 'FILE':
                if not args:
                    raise ValueError("FILE requires a file name")
                if audio_file is not None and args[0] != audio_file:
                    raise ValueError(f"cue sheet references multiple audio files ({audio_file!r} and {args[0]!r})")
                audio_file = args[0]
                file_type = args[1].upper() if len(args) > 1 else None

            elif keyword == 'TRACK':
                if len(args) != 2:
                    raise ValueError("TRACK requires a number and a type")
                if audio_file is None:
                    raise ValueError("TRACK appears before any FILE")
                if not args[0].isdigit():
                    raise ValueError(f"invalid track number {args[0]!r}")
                number = int(args[0])
                if args[1].upper() != 'AUDIO':
                    raise ValueError(f"track {number} is not an audio track ({args[1]})")

                if current is not None:
                    tracks.append(current.build())
                expected = len(tracks) + 1
                if number != expected:
                    raise ValueError(f"track number {number} out of order (expected {expected})")

                current = _TrackBuilder(number, line_number, line)
                context = ParseContext.TRACK

            elif keyword == 'INDEX':
                if context is ParseContext.DISC:
                    raise ValueError("INDEX appears outside of a track")
                if len(args) != 2:
                    raise ValueError("INDEX requires a number and a timecode")
                if not args[0].isdigit() or int(args[0]) > 99:
                    raise ValueError(f"invalid index number {args[0]!r}")
                number = int(args[0])
                timecode = parse_timecode(args[1])

                if current.indexes:
                    previous = current.indexes[-1]
                    if number <= previous.number:
                        raise ValueError(f"INDEX {number:02d} follows INDEX {previous.number:02d}")
                    if timecode.total_frames < previous.timecode.total_frames:
                        raise ValueError(
                            f"INDEX {number:02d} at {timecode} is before "
                            f"INDEX {previous.number:02d} at {previous.timecode}"
                        )
                current.indexes.append(CueIndex(number, timecode))

            elif keyword in IGNORED_DIRECTIVES:
                logger.debug(f"Line {line_number}: ignoring {keyword}")

            else:
                logger.debug(f"Line {line_number}: ignoring unknown directive {keyword}")

        except ValueError as e:
            raise CueParseError(str(e), line_number, line) from None

    if current is not None:
        tracks.append(current.build())

    if not tracks:
        raise CueSheetEmpty()

    logger.debug(f"Parsed cue sheet with {len(tracks)} tracks for {audio_file!r}")
    return CueSheet(disc_fields, tuple(tracks), audio_file, file_type)
