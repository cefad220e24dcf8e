#!/usr/bin/env python3
"""
Tests for the command line entry point
"""

import copy
from unittest.mock import Mock, patch

import pytest
import yaml

from config_manager import DEFAULT_CONFIG
from conftest import SAMPLE_CUE
from main import apply_cli_overrides, find_single_file, main, parse_args, resolve_input
from split_errors import InputDiscoveryError


def fake_run(cmd, **kwargs):
    if cmd[0] == 'metaflac' and '--show-sample-rate' in cmd:
        return Mock(returncode=0, stdout='44100\n20000000\n2\n16\n', stderr='')
    if cmd[0] == 'metaflac' and '--export-tags-to=-' in cmd:
        return Mock(returncode=0, stdout='ENCODER=reference libFLAC 1.4.3\nTITLE=Whole Image\n', stderr='')
    return Mock(returncode=0, stdout='', stderr='')


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    for name in ('CUE_ENCODING', 'COMPRESSION_LEVEL', 'OVERWRITE', 'OUTPUT_DIR', 'TITLE_FALLBACK',
                 'PREGAP_POLICY', 'PICTURE_AUTO_DETECT', 'PICTURE_PATH', 'LOG_LEVEL'):
        monkeypatch.delenv(name, raising=False)
    config_dir = tmp_path / 'config'
    monkeypatch.setenv('CONFIG_DIR', str(config_dir))
    return config_dir


@pytest.fixture
def album_dir(tmp_path):
    album = tmp_path / 'album'
    album.mkdir()
    (album / 'album.flac').write_bytes(b'fLaC')
    (album / 'album.cue').write_text(SAMPLE_CUE, encoding='utf-8')
    return album


def test_find_single_file(album_dir):
    assert find_single_file(album_dir, 'cue') == album_dir / 'album.cue'


def test_find_single_file_none_or_many(album_dir):
    with pytest.raises(InputDiscoveryError):
        find_single_file(album_dir, 'log')
    (album_dir / 'second.cue').write_text(SAMPLE_CUE)
    with pytest.raises(InputDiscoveryError) as excinfo:
        find_single_file(album_dir, 'cue')
    assert '--cue' in str(excinfo.value)


def test_resolve_input_relative_to_directory(album_dir):
    assert resolve_input(album_dir, 'album.flac', 'flac') == album_dir / 'album.flac'
    with pytest.raises(InputDiscoveryError):
        resolve_input(album_dir, 'missing.flac', 'flac')


def test_cli_overrides():
    args = parse_args(['--cue-encoding', 'cp1251', '-o', '-c', 'max', '--pregap', 'next',
                       '--no-picture', '--title-fallback', 'Track {number}', '--output-dir', 'out'])
    config = apply_cli_overrides(copy.deepcopy(DEFAULT_CONFIG), args)
    assert config['cue']['encoding'] == 'cp1251'
    assert config['output'] == {
        'compression_level': 'max',
        'overwrite': True,
        'directory': 'out',
        'title_fallback': 'Track {number}',
        'pregap': 'next',
    }
    assert config['picture'] == {'auto_detect': False, 'path': None}


def test_cli_without_flags_keeps_config():
    config = apply_cli_overrides(copy.deepcopy(DEFAULT_CONFIG), parse_args([]))
    assert config == DEFAULT_CONFIG


def test_picture_flags_are_exclusive():
    with pytest.raises(SystemExit):
        parse_args(['--picture', 'a.jpg', '--no-picture'])


def test_main_splits_with_yes(album_dir, capsys):
    with patch('flac_tools.subprocess.run', side_effect=fake_run) as mock_run:
        assert main([str(album_dir), '--yes']) == 0

    commands = [call[0][0] for call in mock_run.call_args_list]
    assert [cmd[0] for cmd in commands] == ['metaflac'] * 3 + ['flac', 'metaflac'] * 3
    first_tags = commands[4]
    assert '--set-tag=ENCODER=reference libFLAC 1.4.3' in first_tags
    assert '--set-tag=TITLE=Intro' in first_tags
    assert '--set-tag=TITLE=Whole Image' not in first_tags
    out = capsys.readouterr().out
    assert out.startswith('Plan\n')
    assert '01 - Intro.flac' in out


def test_main_cancel_writes_nothing(album_dir, monkeypatch):
    monkeypatch.setattr('builtins.input', lambda prompt: 'n')
    with patch('flac_tools.subprocess.run', side_effect=fake_run) as mock_run:
        assert main([str(album_dir)]) == 0
    assert [call[0][0][0] for call in mock_run.call_args_list] == ['metaflac'] * 3


def test_main_confirm_yes(album_dir, monkeypatch):
    monkeypatch.setattr('builtins.input', lambda prompt: 'Y')
    with patch('flac_tools.subprocess.run', side_effect=fake_run) as mock_run:
        assert main([str(album_dir)]) == 0
    assert mock_run.call_count == 9


def test_main_reports_errors(album_dir):
    (album_dir / 'album.cue').write_text('FILE "album.flac" WAVE\n')
    with patch('flac_tools.subprocess.run', side_effect=fake_run) as mock_run:
        assert main([str(album_dir), '--yes']) == 1
    mock_run.assert_not_called()


def test_main_missing_directory(tmp_path):
    assert main([str(tmp_path / 'nowhere'), '--yes']) == 1


def test_main_relative_picture(album_dir):
    (album_dir / 'art.png').write_bytes(b'\x89PNG')
    with patch('flac_tools.subprocess.run', side_effect=fake_run) as mock_run:
        assert main([str(album_dir), '--yes', '--picture', 'art.png']) == 0
    flac_cmd = mock_run.call_args_list[3][0][0]
    assert f'--picture=3|image/png|||{album_dir / "art.png"}' in flac_cmd


def test_main_dump_config(isolated_config):
    assert main(['--dump-config']) == 0
    with open(isolated_config / 'config.yaml') as f:
        assert yaml.safe_load(f) == DEFAULT_CONFIG


def test_main_uses_config_file(album_dir, tmp_path):
    custom = tmp_path / 'custom.yaml'
    custom.write_text('output:\n  compression_level: 8\n')
    with patch('flac_tools.subprocess.run', side_effect=fake_run) as mock_run:
        assert main([str(album_dir), '--yes', '--config', str(custom)]) == 0
    assert '--compression-level-8' in mock_run.call_args_list[3][0][0]


def test_main_rejects_bad_compression(album_dir):
    with patch('flac_tools.subprocess.run', side_effect=fake_run):
        assert main([str(album_dir), '--yes', '-c', '12']) == 1


def test_main_output_dir(album_dir, tmp_path):
    out_dir = tmp_path / 'split'
    with patch('flac_tools.subprocess.run', side_effect=fake_run):
        assert main([str(album_dir), '--yes', '--output-dir', str(out_dir)]) == 0
    assert out_dir.is_dir()


def test_main_with_empty_config_section(album_dir, tmp_path):
    custom = tmp_path / 'custom.yaml'
    custom.write_text('output: null\npicture:\n')
    with patch('flac_tools.subprocess.run', side_effect=fake_run) as mock_run:
        assert main([str(album_dir), '--config', str(custom), '-y']) == 0
    assert '--compression-level-5' in mock_run.call_args_list[3][0][0]


def test_main_rejects_scalar_config_section(album_dir, tmp_path, capsys):
    custom = tmp_path / 'custom.yaml'
    custom.write_text('output: 5\n')
    with patch('flac_tools.subprocess.run', side_effect=fake_run) as mock_run:
        assert main([str(album_dir), '--config', str(custom), '-y']) == 1
    mock_run.assert_not_called()
    assert "section 'output' must be a mapping" in capsys.readouterr().err


def test_main_interrupted_at_prompt(album_dir, monkeypatch):
    def interrupt(prompt):
        raise KeyboardInterrupt

    monkeypatch.setattr('builtins.input', interrupt)
    with patch('flac_tools.subprocess.run', side_effect=fake_run) as mock_run:
        assert main([str(album_dir)]) == 130
    assert [call[0][0][0] for call in mock_run.call_args_list] == ['metaflac'] * 3
