#!/usr/bin/env python3
"""
FLAC Tools - Thin wrappers around the flac and metaflac command line tools
Reads stream information and metadata from the source image and writes one file per planned track
"""

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

from split_errors import AudioToolError, OutputPathConflict
from track_planner import OutputTrackPlan, Plan

logger = logging.getLogger(__name__)

FRONT_COVER = 3

# Vorbis comment field names are printable ASCII without '='
TAG_LINE = re.compile(r'^([\x20-\x3c\x3e-\x7d]+)=(.*)$')


@dataclass(frozen=True)
class StreamInfo:
    """STREAMINFO fields of the source FLAC plus its existing metadata"""
    sample_rate: int
    total_samples: int
    channels: int
    bits_per_sample: int
    tags: Tuple[Tuple[str, str], ...] = ()
    picture_count: int = 0

    @property
    def length_seconds(self) -> float:
        return self.total_samples / self.sample_rate if self.sample_rate else 0.0


def _run_metaflac(args: List[str], path: Path, timeout: int) -> str:
    """Run metaflac on path and return its stdout"""
    cmd = ['metaflac'] + args + [str(path)]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError:
        raise AudioToolError("metaflac not found, install the flac command line tools") from None
    except subprocess.TimeoutExpired:
        raise AudioToolError(f"metaflac timed out reading {path}") from None

    if result.returncode != 0:
        logger.error(f"metaflac failed with return code {result.returncode}")
        raise AudioToolError(f"failed to read FLAC metadata from {path}: {result.stderr.strip()}")
    return result.stdout


def parse_exported_tags(text: str) -> Tuple[Tuple[str, str], ...]:
    """
    Parse `metaflac --export-tags-to=-` output into (name, value) pairs.

    Values may span lines; a line that does not start a new NAME=value
    comment continues the previous one.
    """
    tags: List[Tuple[str, str]] = []
    for line in text.splitlines():
        match = TAG_LINE.match(line)
        if match:
            tags.append((match.group(1), match.group(2)))
        elif tags:
            name, value = tags[-1]
            tags[-1] = (name, f"{value}\n{line}")
    return tuple(tags)


def count_metadata_blocks(text: str) -> int:
    """Number of blocks in `metaflac --list` output"""
    return sum(1 for line in text.splitlines() if line.startswith('METADATA block #'))


def probe_flac(path: Path, timeout: int = 30) -> StreamInfo:
    """Read stream info, Vorbis comments and embedded picture count with metaflac"""
    output = _run_metaflac(
        ['--show-sample-rate', '--show-total-samples', '--show-channels', '--show-bps'],
        path, timeout,
    )
    values = output.split()
    if len(values) != 4 or not all(value.isdigit() for value in values):
        raise AudioToolError(f"unexpected metaflac output for {path}: {output!r}")
    sample_rate, total_samples, channels, bits_per_sample = (int(value) for value in values)

    tags = parse_exported_tags(_run_metaflac(['--export-tags-to=-'], path, timeout))
    picture_count = count_metadata_blocks(_run_metaflac(['--list', '--block-type=PICTURE'], path, timeout))

    info = StreamInfo(sample_rate, total_samples, channels, bits_per_sample, tags, picture_count)
    logger.debug(f"Stream info for {path.name}: {info}")
    return info


def build_split_command(plan: Plan, track: OutputTrackPlan) -> List[str]:
    """The flac invocation that re-encodes one track's sample range"""
    sample_range = track.sample_range
    cmd = [
        'flac',
        '--silent',
        f'--compression-level-{track.compression_level}',
        f'--skip={sample_range.start}',
        f'--until={sample_range.end}',
    ]

    if plan.picture is not None:
        cmd.append(f'--picture={FRONT_COVER}|{plan.picture.mime_type}|||{plan.picture.path}')

    if track.overwrite:
        cmd.append('-f')

    cmd.append(f'--output-name={track.output_path}')
    cmd.append(str(plan.source_path))
    return cmd


def build_tag_command(track: OutputTrackPlan) -> List[str]:
    """
    The metaflac invocation that replaces the comments flac copied from the
    source with exactly the planned tags.
    """
    cmd = ['metaflac', '--remove-all-tags']
    for key, value in track.tags:
        cmd.append(f'--set-tag={key}={value}')
    cmd.append(str(track.output_path))
    return cmd


class FlacSplitter:
    """Materializes a plan by running flac once per track"""

    def __init__(self, timeout_floor: int = 120, tag_timeout: int = 30):
        self.logger = logging.getLogger(__name__)
        self.timeout_floor = timeout_floor
        self.tag_timeout = tag_timeout

    def split(self, plan: Plan) -> List[Path]:
        """Write every planned track, stopping at the first failure"""
        self._check_outputs(plan)

        written = []
        for track in plan.tracks:
            self._encode_track(plan, track)
            self._write_tags(track)
            written.append(track.output_path)

        self.logger.info(f"Split {plan.source_path.name} into {len(written)} tracks")
        return written

    def _check_outputs(self, plan: Plan):
        """Re-check the overwrite policy right before the first encode"""
        if plan.overwrite:
            return
        for track in plan.tracks:
            if track.output_path.exists():
                raise OutputPathConflict("output file already exists", track.output_path)

    def _timeout_for(self, plan: Plan, track: OutputTrackPlan) -> int:
        track_minutes = track.sample_range.length / plan.sample_rate / 60.0
        return max(self.timeout_floor, int(track_minutes * 3 + 60))

    def _run(self, tool: str, cmd: List[str], timeout: int, track: OutputTrackPlan):
        self.logger.debug(f"Running {' '.join(cmd)} (timeout {timeout}s)")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
        except FileNotFoundError:
            raise AudioToolError(f"{tool} not found, install the flac command line tools") from None
        except subprocess.TimeoutExpired:
            raise AudioToolError(f"{tool} timed out on track {track.number}") from None

        if result.returncode != 0:
            self.logger.error(f"{tool} failed with return code {result.returncode}")
            if result.stderr:
                self.logger.error(f"{tool} stderr: {result.stderr.strip()}")
            raise AudioToolError(f"{tool} failed on track {track.number} ({track.output_path})")

    def _encode_track(self, plan: Plan, track: OutputTrackPlan):
        """Encode a single track to FLAC"""
        track.output_path.parent.mkdir(parents=True, exist_ok=True)
        self.logger.info(f"Encoding track {track.number:02d} -> {track.output_path.name}")
        self._run('flac', build_split_command(plan, track), self._timeout_for(plan, track), track)

    def _write_tags(self, track: OutputTrackPlan):
        """Replace the copied source comments with the planned tags"""
        self._run('metaflac', build_tag_command(track), self.tag_timeout, track)
