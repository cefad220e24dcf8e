#!/usr/bin/env python3
"""
Cue Splitter - Runs one split: reads the cue sheet, plans every track, then encodes
Planning is complete and validated before any output file is written
"""

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from config_manager import get_cue_encoding, get_plan_options
from cue_encoding import detect_encoding
from cue_parser import CueSheet, parse_cue
from flac_tools import FlacSplitter, StreamInfo, probe_flac
from picture_resolver import list_directory, resolve_picture
from split_errors import CueParseError, InputDiscoveryError
from track_planner import Plan, build_plan


class CueSplitter:
    """Prepares and executes a split of one FLAC image using its cue sheet"""

    def __init__(self, config: Dict[str, Any],
                 probe: Callable[[Path], StreamInfo] = probe_flac,
                 splitter: Optional[FlacSplitter] = None):
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.probe = probe
        self.splitter = splitter or FlacSplitter()

    def prepare(self, flac_path: Path, cue_path: Path, search_dir: Optional[Path] = None) -> Plan:
        """Build the validated plan; nothing is written"""
        flac_path = Path(flac_path)
        cue_path = Path(cue_path)
        search_dir = Path(search_dir) if search_dir is not None else flac_path.parent

        try:
            data = cue_path.read_bytes()
        except OSError as e:
            raise InputDiscoveryError(f"failed to read cue file {cue_path}: {e}") from None

        decoded = detect_encoding(data, get_cue_encoding(self.config))
        self.logger.info(f"Reading {cue_path.name} as {decoded.encoding.label}")

        sheet = parse_cue(decoded.text)
        if self.config['cue'].get('enforce_filename_match'):
            self._check_audio_file(sheet, flac_path)

        info = self.probe(flac_path)
        self.logger.info(
            f"{flac_path.name}: {info.sample_rate} Hz, {info.channels} ch, "
            f"{info.bits_per_sample} bits, {info.total_samples} samples, "
            f"{len(info.tags)} tags, {info.picture_count} embedded pictures"
        )

        picture_config = self.config['picture']
        explicit = picture_config.get('path')
        auto_detect = bool(picture_config.get('auto_detect', True))
        listing: List[str] = list_directory(search_dir) if auto_detect and not explicit else []
        picture = resolve_picture(explicit, listing, auto_detect, search_dir)

        return build_plan(
            sheet,
            info.sample_rate,
            info.total_samples,
            flac_path,
            decoded.encoding,
            encoding_autodetected=decoded.autodetected,
            cue_path=cue_path,
            options=get_plan_options(self.config),
            picture=picture,
            source_tags=info.tags,
            embedded_pictures=info.picture_count,
        )

    def execute(self, plan: Plan) -> List[Path]:
        """Hand the plan to the encoder"""
        return self.splitter.split(plan)

    def _check_audio_file(self, sheet: CueSheet, flac_path: Path):
        """Require the sheet's FILE to name the FLAC being split"""
        if sheet.audio_file is None:
            return
        referenced = Path(sheet.audio_file.replace('\\', '/'))
        if referenced.name != flac_path.name and referenced.stem != flac_path.stem:
            raise CueParseError(f"cue sheet references {referenced.name}, but the FLAC is {flac_path.name}")
