#!/usr/bin/env python3
"""
Picture Resolver - Chooses at most one cover image to embed in every track
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union

from split_errors import AmbiguousPictureCandidate, PictureNotFound, UnsupportedPicture

logger = logging.getLogger(__name__)

PICTURE_MIME_TYPES = {
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'png': 'image/png',
    'gif': 'image/gif',
    'bmp': 'image/bmp',
    'webp': 'image/webp',
    'tif': 'image/tiff',
    'tiff': 'image/tiff',
}


@dataclass(frozen=True)
class PictureChoice:
    """The picture that will be embedded and how it was picked"""
    path: Path
    mime_type: str
    explicit: bool

    @property
    def name(self) -> str:
        return self.path.name


def picture_mime_type(name: Union[str, Path]) -> Optional[str]:
    """MIME type for a supported image name, None for anything else"""
    suffix = Path(name).suffix.lower().lstrip('.')
    return PICTURE_MIME_TYPES.get(suffix)


def list_directory(directory: Union[str, Path]) -> List[str]:
    """Sorted names of the regular files in a directory"""
    directory = Path(directory)
    return sorted(entry.name for entry in os.scandir(directory) if entry.is_file())


def resolve_picture(explicit_path: Optional[Union[str, Path]],
                    listing: Iterable[str],
                    auto_detect: bool = True,
                    search_dir: Optional[Union[str, Path]] = None) -> Optional[PictureChoice]:
    """
    Pick the picture to embed.

    An explicit path must exist and have a supported extension. Otherwise,
    with auto-detection enabled, the listing must hold at most one image:
    none means no picture, more than one is ambiguous.
    """
    if explicit_path is not None:
        path = Path(explicit_path)
        if not path.is_file():
            raise PictureNotFound(f"picture file not found: {path}")
        mime_type = picture_mime_type(path)
        if mime_type is None:
            raise UnsupportedPicture(
                f"unsupported picture type: {path} (use one of: {', '.join(sorted(PICTURE_MIME_TYPES))})"
            )
        logger.debug(f"Using explicit picture {path}")
        return PictureChoice(path, mime_type, explicit=True)

    if not auto_detect:
        logger.debug("Picture auto-detection disabled")
        return None

    candidates = sorted(name for name in listing if picture_mime_type(name) is not None)
    if not candidates:
        logger.debug("No picture candidates found")
        return None
    if len(candidates) > 1:
        raise AmbiguousPictureCandidate(candidates)

    base = Path(search_dir) if search_dir is not None else Path()
    path = base / candidates[0]
    logger.info(f"Detected picture {path.name}")
    return PictureChoice(path, picture_mime_type(path), explicit=False)
