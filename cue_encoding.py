#!/usr/bin/env python3
"""
Cue Encoding - Detects the text encoding of a cue sheet
Cue sheets in the wild are either UTF-8 or the Windows-1251 codepage
"""

import codecs
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from split_errors import UnsupportedEncoding

logger = logging.getLogger(__name__)


class TextEncoding(Enum):
    """Supported cue sheet encodings"""
    UTF_8 = "utf-8"
    WINDOWS_1251 = "windows-1251"

    @property
    def label(self) -> str:
        return self.value


ENCODING_LABELS = {
    'utf-8': TextEncoding.UTF_8,
    'utf8': TextEncoding.UTF_8,
    'windows-1251': TextEncoding.WINDOWS_1251,
    'cp1251': TextEncoding.WINDOWS_1251,
    '1251': TextEncoding.WINDOWS_1251,
}


@dataclass(frozen=True)
class DecodedCue:
    """Decoded cue sheet text and the encoding used to get it"""
    text: str
    encoding: TextEncoding
    autodetected: bool


def resolve_encoding(label: str) -> TextEncoding:
    """Map a user supplied encoding label to a supported encoding"""
    encoding = ENCODING_LABELS.get(label.strip().lower())
    if encoding is None:
        raise UnsupportedEncoding(
            f"unsupported cue encoding: {label} (use one of: {', '.join(sorted(ENCODING_LABELS))})"
        )
    return encoding


def _decode(data: bytes, encoding: TextEncoding, errors: str) -> str:
    if encoding is TextEncoding.UTF_8:
        # utf-8-sig drops a leading BOM and is otherwise plain UTF-8
        return data.decode('utf-8-sig', errors=errors)
    return data.decode('cp1251', errors=errors)


def detect_encoding(data: bytes, override: Optional[Union[TextEncoding, str]] = None) -> DecodedCue:
    """
    Decode raw cue bytes.

    An override is applied unconditionally. Otherwise the bytes are tried as
    strict UTF-8 and, failing that, decoded as Windows-1251. Windows-1251 leaves
    a single byte (0x98) undefined, which is replaced rather than rejected, so
    this function never fails to produce text.
    """
    if override is not None:
        if isinstance(override, str):
            override = resolve_encoding(override)
        logger.debug(f"Using forced cue encoding {override.label}")
        return DecodedCue(_decode(data, override, 'replace'), override, False)

    try:
        text = _decode(data, TextEncoding.UTF_8, 'strict')
    except UnicodeDecodeError as e:
        logger.debug(f"Cue sheet is not valid UTF-8 ({e.reason} at byte {e.start}), using windows-1251")
        return DecodedCue(_decode(data, TextEncoding.WINDOWS_1251, 'replace'), TextEncoding.WINDOWS_1251, True)

    if data.startswith(codecs.BOM_UTF8):
        logger.debug("Stripped UTF-8 byte order mark from cue sheet")
    return DecodedCue(text, TextEncoding.UTF_8, True)
