"""
Shared pytest fixtures: a three track cue sheet and the plan built from it
"""

from pathlib import Path

import pytest

from cue_encoding import TextEncoding
from cue_parser import parse_cue
from track_planner import PlanOptions, build_plan

SAMPLE_CUE = '''REM GENRE Rock
REM DATE 1999
REM COMMENT "ExactAudioCopy v1.0"
PERFORMER "Disc Artist"
TITLE "The Album"
CATALOG 0123456789012
FILE "album.flac" WAVE
  TRACK 01 AUDIO
    TITLE "Intro"
    INDEX 01 00:00:00
  TRACK 02 AUDIO
    TITLE "Second Song"
    PERFORMER "Guest Artist"
    ISRC USABC9900001
    INDEX 00 03:20:10
    INDEX 01 03:22:00
  TRACK 03 AUDIO
    TITLE "Finale"
    SONGWRITER "Someone"
    INDEX 01 07:00:74
'''

SAMPLE_RATE = 44100
TOTAL_SAMPLES = 20_000_000


@pytest.fixture
def sample_cue_text():
    return SAMPLE_CUE


@pytest.fixture
def sample_sheet():
    return parse_cue(SAMPLE_CUE)


@pytest.fixture
def make_plan(sample_sheet):
    """Build a plan from the sample sheet; keyword arguments go to PlanOptions"""
    def _make_plan(picture=None, path_exists=lambda path: False, source_tags=(), embedded_pictures=0, **options):
        return build_plan(
            sample_sheet,
            SAMPLE_RATE,
            TOTAL_SAMPLES,
            Path('/music/album.flac'),
            TextEncoding.UTF_8,
            encoding_autodetected=True,
            cue_path=Path('/music/album.cue'),
            options=PlanOptions(**options),
            picture=picture,
            path_exists=path_exists,
            source_tags=source_tags,
            embedded_pictures=embedded_pictures,
        )
    return _make_plan
