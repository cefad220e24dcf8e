#!/usr/bin/env python3
"""
Track Planner - Turns a parsed cue sheet into a validated split plan
Computes exact sample ranges, resolves inherited tags and output file names
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from cue_encoding import TextEncoding
from cue_parser import FRAMES_PER_SECOND, CueSheet, CueTrack
from picture_resolver import PictureChoice
from split_errors import ConfigError, MissingTitle, OutputPathConflict, SampleRangeInvalid

logger = logging.getLogger(__name__)

MAX_COMPRESSION_LEVEL = 8

# Cue field -> Vorbis comment names, in output order. Later entries for the
# same tag win, so COMPOSER prefers REM COMPOSER over SONGWRITER.
DISC_TAG_FIELDS = [
    ('title', ('ALBUM',)),
    ('performer', ('ALBUMARTIST', 'ARTIST')),
    ('songwriter', ('COMPOSER',)),
    ('composer', ('COMPOSER',)),
    ('genre', ('GENRE',)),
    ('date', ('DATE',)),
    ('catalog', ('CATALOGNUMBER',)),
    ('comment', ('COMMENT',)),
    ('discid', ('DISCID',)),
    ('replaygain_album_gain', ('REPLAYGAIN_ALBUM_GAIN',)),
    ('replaygain_album_peak', ('REPLAYGAIN_ALBUM_PEAK',)),
]

TRACK_TAG_FIELDS = [
    ('title', ('TITLE',)),
    ('performer', ('ARTIST',)),
    ('songwriter', ('COMPOSER',)),
    ('composer', ('COMPOSER',)),
    ('isrc', ('ISRC',)),
    ('date', ('DATE',)),
    ('replaygain_track_gain', ('REPLAYGAIN_TRACK_GAIN',)),
    ('replaygain_track_peak', ('REPLAYGAIN_TRACK_PEAK',)),
]

Tags = Tuple[Tuple[str, str], ...]


class PregapPolicy(Enum):
    """Where the INDEX 00 to INDEX 01 pre-gap audio ends up"""
    PREVIOUS = "previous"  # tail of the previous track
    NEXT = "next"          # lead-in of the track it belongs to
    DISCARD = "discard"    # not emitted at all

    @classmethod
    def from_value(cls, value: Any) -> 'PregapPolicy':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ', '.join(policy.value for policy in cls)
            raise ConfigError(f"invalid pre-gap policy {value!r} (choose from {choices})") from None


@dataclass(frozen=True)
class SampleRange:
    """Half-open range [start, end) of native sample indices"""
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class OutputTrackPlan:
    """Everything needed to write one output track"""
    number: int
    title: str
    tags: Tags
    output_path: Path
    sample_range: SampleRange
    compression_level: int
    overwrite: bool

    @property
    def tag_map(self) -> Dict[str, str]:
        return dict(self.tags)


@dataclass(frozen=True)
class Plan:
    """The validated, immutable description of a split run"""
    source_path: Path
    cue_path: Optional[Path]
    encoding: TextEncoding
    encoding_autodetected: bool
    sample_rate: int
    total_samples: int
    disc_tags: Tags
    tracks: Tuple[OutputTrackPlan, ...]
    picture: Optional[PictureChoice]
    compression_level: int
    overwrite: bool
    pregap_policy: PregapPolicy
    source_tags: Tags = ()
    embedded_pictures: int = 0


@dataclass(frozen=True)
class PlanOptions:
    """Caller controlled planning settings"""
    compression_level: int = 5
    overwrite: bool = False
    pregap_policy: PregapPolicy = PregapPolicy.NEXT
    title_fallback: Optional[str] = None
    output_dir: Optional[Path] = None


def parse_compression_level(value: Any) -> int:
    """Accept 0-8 or 'max' (which means 8)"""
    if isinstance(value, bool):
        raise ConfigError(f"compression level must be 0-{MAX_COMPRESSION_LEVEL} or 'max', got {value!r}")
    if isinstance(value, int):
        level = value
    else:
        text = str(value).strip()
        if text.lower() == 'max':
            return MAX_COMPRESSION_LEVEL
        if not text.isdigit():
            raise ConfigError(f"compression level must be 0-{MAX_COMPRESSION_LEVEL} or 'max', got {value!r}")
        level = int(text)

    if not 0 <= level <= MAX_COMPRESSION_LEVEL:
        raise ConfigError(f"compression level must be 0-{MAX_COMPRESSION_LEVEL} or 'max', got {value!r}")
    return level


def frames_to_samples(frames: int, sample_rate: int) -> int:
    """
    Rescale a cue frame count (1/75 s) to native samples.

    Floor division is authoritative. It is exact for every sample rate
    divisible by 75 (44100, 48000, 88200, 96000, ...).
    """
    if frames < 0:
        raise ValueError(f"negative frame count {frames}")
    return frames * sample_rate // FRAMES_PER_SECOND


def compute_sample_ranges(sheet: CueSheet, sample_rate: int, total_samples: int,
                          pregap_policy: PregapPolicy = PregapPolicy.NEXT) -> List[SampleRange]:
    """Compute the sample range of every track, validating order and bounds"""
    if sample_rate <= 0:
        raise SampleRangeInvalid(f"invalid sample rate {sample_rate}")
    if total_samples <= 0:
        raise SampleRangeInvalid("total sample count of the source is unknown or zero")

    tracks = sheet.tracks
    index_starts = [frames_to_samples(track.start.total_frames, sample_rate) for track in tracks]
    pregaps = [
        frames_to_samples(track.pregap.total_frames, sample_rate) if track.pregap is not None else None
        for track in tracks
    ]

    if pregap_policy is PregapPolicy.NEXT:
        starts = [pregap if pregap is not None else start for start, pregap in zip(index_starts, pregaps)]
    else:
        starts = index_starts

    for i, track in enumerate(tracks):
        if starts[i] >= total_samples:
            raise SampleRangeInvalid(
                f"starts at sample {starts[i]}, beyond the end of the audio ({total_samples} samples)",
                track.number,
            )
        if i + 1 < len(tracks) and starts[i] >= starts[i + 1]:
            raise SampleRangeInvalid(
                f"starts at sample {starts[i]}, not before track {tracks[i + 1].number} at {starts[i + 1]}",
                track.number,
            )

    ranges = []
    for i, track in enumerate(tracks):
        if i + 1 == len(tracks):
            end = total_samples
        elif pregap_policy is PregapPolicy.DISCARD and pregaps[i + 1] is not None:
            end = pregaps[i + 1]
        else:
            end = starts[i + 1]

        if end <= starts[i]:
            raise SampleRangeInvalid(f"empty sample range [{starts[i]}, {end})", track.number)
        ranges.append(SampleRange(starts[i], end))

    return ranges


def _fields_to_tags(fields: Dict[str, str], mapping: List[Tuple[str, Tuple[str, ...]]]) -> Dict[str, str]:
    tags: Dict[str, str] = {}
    for field_name, tag_names in mapping:
        value = fields.get(field_name, '').strip()
        if value:
            for tag in tag_names:
                tags[tag] = value
    return tags


def disc_tags(sheet: CueSheet) -> Dict[str, str]:
    """Tags every track inherits from the disc-level fields"""
    return _fields_to_tags(sheet.fields, DISC_TAG_FIELDS)


def track_tags(track: CueTrack) -> Dict[str, str]:
    """Tags set by the track's own fields"""
    return _fields_to_tags(track.fields, TRACK_TAG_FIELDS)


def merge_tags(disc: Dict[str, str], track: Dict[str, str]) -> Dict[str, str]:
    """Overlay track tags on disc tags; the track wins on a key collision"""
    merged = dict(disc)
    merged.update(track)
    return merged


def merge_source_tags(source: Tags, overrides: Dict[str, str]) -> Tags:
    """
    Keep the source FLAC's comments under the cue-derived tags.

    A cue-derived key replaces every source comment of the same name,
    compared case-insensitively; other source comments, repeated names
    included, are kept in their original order.
    """
    replaced = {key.upper() for key in overrides}
    kept = tuple((key, value) for key, value in source if key.upper() not in replaced)
    return kept + tuple(overrides.items())


def resolve_title(track: CueTrack, title_fallback: Optional[str] = None) -> str:
    """The track's own TITLE, else the configured fallback, else MissingTitle"""
    title = track.fields.get('title', '').strip()
    if title:
        return title

    if title_fallback:
        try:
            title = title_fallback.format(number=track.number).strip()
        except (KeyError, IndexError, ValueError) as e:
            raise ConfigError(f"invalid title fallback {title_fallback!r}: {e}") from None
        if title:
            logger.debug(f"Track {track.number} has no title, using fallback {title!r}")
            return title

    raise MissingTitle(track.number)


def sanitize_filename(filename: str) -> str:
    """Sanitize filename for filesystem compatibility"""
    chars_to_replace = {
        '/': '-',
        '\\': '-',
        ':': ' -',
        '*': '',
        '?': '',
        '"': "'",
        '<': '(',
        '>': ')',
        '|': '-'
    }

    for char, replacement in chars_to_replace.items():
        filename = filename.replace(char, replacement)

    # Control characters are never valid in names
    filename = ''.join(char for char in filename if char.isprintable())

    return ' '.join(filename.split()).strip()


def output_file_name(number: int, title: str) -> str:
    """NN - Title.flac, or NN.flac when nothing of the title survives sanitizing"""
    name = sanitize_filename(title)
    if not name:
        return f"{number:02d}.flac"
    return f"{number:02d} - {name}.flac"


def build_plan(sheet: CueSheet,
               sample_rate: int,
               total_samples: int,
               source_path: Path,
               encoding: TextEncoding,
               encoding_autodetected: bool = True,
               cue_path: Optional[Path] = None,
               options: Optional[PlanOptions] = None,
               picture: Optional[PictureChoice] = None,
               path_exists: Callable[[Path], bool] = os.path.exists,
               source_tags: Tags = (),
               embedded_pictures: int = 0) -> Plan:
    """
    Build and validate the whole split plan.

    Nothing is written here; path_exists is the only contact with the
    filesystem and is used to honour the overwrite setting before any track
    is encoded. source_tags are the comments already in the source FLAC,
    which every track keeps unless a cue-derived tag replaces them.
    """
    options = options or PlanOptions()
    source_path = Path(source_path)
    output_dir = Path(options.output_dir) if options.output_dir else source_path.parent

    ranges = compute_sample_ranges(sheet, sample_rate, total_samples, options.pregap_policy)
    shared = disc_tags(sheet)
    total_tracks = str(len(sheet.tracks))

    tracks = []
    seen: Dict[Path, int] = {}
    for track, sample_range in zip(sheet.tracks, ranges):
        title = resolve_title(track, options.title_fallback)

        tags = merge_tags(shared, track_tags(track))
        tags['TITLE'] = title
        tags['TRACKNUMBER'] = str(track.number)
        tags['TRACKTOTAL'] = total_tracks
        tags['TOTALTRACKS'] = total_tracks

        output_path = output_dir / output_file_name(track.number, title)
        if output_path == source_path:
            raise OutputPathConflict(f"track {track.number} would overwrite the source file", output_path)
        if output_path in seen:
            raise OutputPathConflict(
                f"tracks {seen[output_path]} and {track.number} map to the same output file", output_path
            )
        seen[output_path] = track.number

        logger.debug(f"Track {track.number}: samples [{sample_range.start}, {sample_range.end}) -> {output_path.name}")
        tracks.append(OutputTrackPlan(
            number=track.number,
            title=title,
            tags=merge_source_tags(source_tags, tags),
            output_path=output_path,
            sample_range=sample_range,
            compression_level=options.compression_level,
            overwrite=options.overwrite,
        ))

    if not options.overwrite:
        for track_plan in tracks:
            if path_exists(track_plan.output_path):
                raise OutputPathConflict("output file already exists", track_plan.output_path)

    logger.info(f"Planned {len(tracks)} tracks from {source_path.name}")
    return Plan(
        source_path=source_path,
        cue_path=Path(cue_path) if cue_path else None,
        encoding=encoding,
        encoding_autodetected=encoding_autodetected,
        sample_rate=sample_rate,
        total_samples=total_samples,
        disc_tags=tuple(shared.items()),
        tracks=tuple(tracks),
        picture=picture,
        compression_level=options.compression_level,
        overwrite=options.overwrite,
        pregap_policy=options.pregap_policy,
        source_tags=tuple(source_tags),
        embedded_pictures=embedded_pictures,
    )
