#!/usr/bin/env python3
"""
Tests for cover picture selection
"""

from pathlib import Path

import pytest

from picture_resolver import PictureChoice, list_directory, picture_mime_type, resolve_picture
from split_errors import AmbiguousPictureCandidate, PictureNotFound, UnsupportedPicture


@pytest.mark.parametrize('name, expected', [
    ('cover.jpg', 'image/jpeg'),
    ('Folder.JPEG', 'image/jpeg'),
    ('front.png', 'image/png'),
    ('scan.tiff', 'image/tiff'),
    ('album.flac', None),
    ('README', None),
])
def test_picture_mime_type(name, expected):
    assert picture_mime_type(name) == expected


def test_no_candidates():
    assert resolve_picture(None, ['album.flac', 'album.cue', 'album.log']) is None


def test_single_candidate_is_detected(tmp_path):
    choice = resolve_picture(None, ['album.cue', 'cover.jpg', 'album.flac'], search_dir=tmp_path)
    assert choice == PictureChoice(tmp_path / 'cover.jpg', 'image/jpeg', explicit=False)
    assert choice.name == 'cover.jpg'


def test_multiple_candidates_are_ambiguous():
    with pytest.raises(AmbiguousPictureCandidate) as excinfo:
        resolve_picture(None, ['front.png', 'album.flac', 'back.jpg'])
    assert excinfo.value.candidates == ('back.jpg', 'front.png')


def test_two_jpg_files_are_ambiguous():
    with pytest.raises(AmbiguousPictureCandidate) as excinfo:
        resolve_picture(None, ['album.flac', 'album.cue', 'front.jpg', 'back.jpg'])
    assert excinfo.value.candidates == ('back.jpg', 'front.jpg')
    assert 'back.jpg' in str(excinfo.value)
    assert 'front.jpg' in str(excinfo.value)


def test_auto_detect_disabled():
    assert resolve_picture(None, ['cover.jpg', 'back.jpg'], auto_detect=False) is None


def test_explicit_picture_wins_over_listing(tmp_path):
    picture = tmp_path / 'art.png'
    picture.write_bytes(b'\x89PNG')
    choice = resolve_picture(picture, ['cover.jpg', 'back.jpg'])
    assert choice == PictureChoice(picture, 'image/png', explicit=True)


def test_explicit_picture_with_auto_detect_disabled(tmp_path):
    picture = tmp_path / 'art.jpg'
    picture.write_bytes(b'\xff\xd8')
    assert resolve_picture(str(picture), [], auto_detect=False).explicit


def test_explicit_picture_missing(tmp_path):
    with pytest.raises(PictureNotFound):
        resolve_picture(tmp_path / 'nope.jpg', [])


def test_explicit_picture_unsupported(tmp_path):
    notes = tmp_path / 'notes.txt'
    notes.write_text('not an image')
    with pytest.raises(UnsupportedPicture):
        resolve_picture(notes, [])


def test_list_directory_skips_directories(tmp_path):
    (tmp_path / 'b.jpg').write_bytes(b'')
    (tmp_path / 'a.flac').write_bytes(b'')
    (tmp_path / 'scans.png').mkdir()
    assert list_directory(tmp_path) == ['a.flac', 'b.jpg']


def test_detected_picture_from_real_directory(tmp_path):
    (tmp_path / 'album.flac').write_bytes(b'')
    (tmp_path / 'Cover.JPG').write_bytes(b'')
    choice = resolve_picture(None, list_directory(tmp_path), search_dir=tmp_path)
    assert choice.path == Path(tmp_path / 'Cover.JPG')
    assert choice.mime_type == 'image/jpeg'
