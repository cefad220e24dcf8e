#!/usr/bin/env python3
"""
Plan Renderer - Formats a validated split plan for display before confirmation
"""

from collections import Counter
from typing import List, Tuple

from cue_parser import FRAMES_PER_SECOND
from track_planner import OutputTrackPlan, Plan


def format_msf(frames: int) -> str:
    """Format a frame count as MM:SS:FF"""
    total_seconds, frames = divmod(frames, FRAMES_PER_SECOND)
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes:02d}:{seconds:02d}:{frames:02d}"


def _samples_to_frames(samples: int, sample_rate: int) -> int:
    return samples * FRAMES_PER_SECOND // sample_rate


def format_tag_pairs(pairs: List[Tuple[str, str]]) -> str:
    return '; '.join(f"{key}={value}" for key, value in pairs)


def shared_tags(plan: Plan) -> List[Tuple[str, str]]:
    """Tag pairs carried identically by every track, sorted"""
    if not plan.tracks:
        return []
    counts = Counter(pair for track in plan.tracks for pair in set(track.tags))
    return sorted(pair for pair, count in counts.items() if count == len(plan.tracks))


def unique_tags(track: OutputTrackPlan, common: List[Tuple[str, str]]) -> List[Tuple[str, str]]:
    """Tag pairs of one track that are not shared by all tracks, sorted"""
    common_set = set(common)
    return sorted(pair for pair in track.tags if pair not in common_set)


def _render_track(plan: Plan, track: OutputTrackPlan, common: List[Tuple[str, str]]) -> str:
    sample_range = track.sample_range
    start = _samples_to_frames(sample_range.start, plan.sample_rate)
    end = _samples_to_frames(sample_range.end, plan.sample_rate)
    line = (
        f"  {track.output_path.name}  {format_msf(end - start)} "
        f"({format_msf(start)}-{format_msf(end)}) "
        f"[samples {sample_range.start}-{sample_range.end}]"
    )
    tags = format_tag_pairs(unique_tags(track, common))
    if tags:
        line += f"  {tags}"
    return line


def render_plan(plan: Plan) -> str:
    """Render the plan as plain text; no validation happens here"""
    encoding = plan.encoding.label
    if plan.encoding_autodetected:
        encoding += " (autodetected)"

    lines = ["Plan", f"  Input: {plan.source_path}"]
    if plan.cue_path is not None:
        lines.append(f"  CUE: {plan.cue_path}")
    lines.append(f"  CUE encoding: {encoding}")
    lines.append(
        f"  Tracks: {len(plan.tracks)} ({plan.sample_rate} Hz, "
        f"compression {plan.compression_level}, pre-gap {plan.pregap_policy.value})"
    )
    if plan.tracks:
        lines.append(f"  Output directory: {plan.tracks[0].output_path.parent}")
    lines.append(f"  Overwrite existing files: {'yes' if plan.overwrite else 'no'}")

    common = shared_tags(plan)
    lines.append("Shared tags")
    lines.append(f"  {format_tag_pairs(common)}" if common else "  (none)")

    pictures = []
    if plan.picture is not None:
        how = "explicit" if plan.picture.explicit else "detected"
        pictures.append(f"{plan.picture.name} ({plan.picture.mime_type}, {how})")
    if plan.embedded_pictures:
        pictures.append(f"{plan.embedded_pictures} embedded in the source")
    lines.append(f"Picture: {'; '.join(pictures) if pictures else 'none'}")

    lines.append("Tracks")
    for track in plan.tracks:
        lines.append(_render_track(plan, track, common))

    return '\n'.join(lines)
