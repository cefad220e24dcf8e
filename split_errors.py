#!/usr/bin/env python3
"""
Split Errors - Exceptions raised while planning and running a cue split
"""

from pathlib import Path
from typing import Optional, Sequence


class CueSplitError(Exception):
    """Base exception for everything the splitter reports to the user"""


class UnsupportedEncoding(CueSplitError):
    """Raised when a forced cue encoding label is not recognised"""


class CueParseError(CueSplitError):
    """Raised when the cue sheet text is malformed"""

    def __init__(self, message: str, line_number: Optional[int] = None, line: Optional[str] = None):
        self.message = message
        self.line_number = line_number
        self.line = line
        super().__init__(self._describe())

    def _describe(self) -> str:
        if self.line_number is None:
            return f"cue parse: {self.message}"
        text = f"cue parse: line {self.line_number}: {self.message}"
        if self.line and self.line.strip():
            text += f"\n    {self.line.strip()}"
        return text


class CueSheetEmpty(CueParseError):
    """Raised when the cue sheet describes no tracks"""

    def __init__(self):
        super().__init__("cue sheet has no tracks")


class SampleRangeInvalid(CueSplitError):
    """Raised when computed sample ranges are non-monotonic or out of bounds"""

    def __init__(self, message: str, track_number: Optional[int] = None):
        self.track_number = track_number
        if track_number is not None:
            message = f"track {track_number}: {message}"
        super().__init__(message)


class MissingTitle(CueSplitError):
    """Raised when a track has no title and no fallback is configured"""

    def __init__(self, track_number: int):
        self.track_number = track_number
        super().__init__(f"track {track_number} has no TITLE (configure a title fallback to allow this)")


class OutputPathConflict(CueSplitError):
    """Raised when an output path already exists or is claimed twice"""

    def __init__(self, message: str, path: Path):
        self.path = path
        super().__init__(f"{message}: {path}")


class AmbiguousPictureCandidate(CueSplitError):
    """Raised when more than one picture could be embedded"""

    def __init__(self, candidates: Sequence[str]):
        self.candidates = tuple(candidates)
        super().__init__(
            f"multiple picture files found ({', '.join(self.candidates)}), "
            f"pass --picture to choose one or --no-picture"
        )


class PictureNotFound(CueSplitError):
    """Raised when an explicit picture path does not exist"""


class UnsupportedPicture(CueSplitError):
    """Raised when an explicit picture has an unsupported extension"""


class ConfigError(CueSplitError):
    """Raised for invalid configuration values"""


class AudioToolError(CueSplitError):
    """Raised when flac or metaflac fails"""


class InputDiscoveryError(CueSplitError):
    """Raised when the FLAC/CUE input pair cannot be determined"""
