#!/usr/bin/env python3
"""
flac-cue-split Main Application
Splits a single-file FLAC image into per-track FLAC files using its cue sheet

Copyright (c) 2025 flac-cue-split Contributors
Licensed under the MIT License - see LICENSE file for details
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from config_manager import ConfigManager
from cue_splitter import CueSplitter
from plan_renderer import render_plan
from split_errors import CueSplitError, InputDiscoveryError


def setup_logging(level: str = 'INFO', verbose: bool = False):
    """Setup logging configuration"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, str(level).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


def find_single_file(directory: Path, extension: str) -> Path:
    """Return the only file in directory with the given extension"""
    matches = sorted(
        path for path in directory.iterdir()
        if path.is_file() and path.suffix.lower() == f'.{extension}'
    )
    if not matches:
        raise InputDiscoveryError(f"no .{extension} file found in {directory}")
    if len(matches) > 1:
        raise InputDiscoveryError(
            f"multiple .{extension} files found in {directory}, please specify --{extension}"
        )
    return matches[0]


def resolve_input(directory: Path, provided: Optional[str], extension: str) -> Path:
    """Use the given path (relative to directory) or discover the only candidate"""
    if provided is None:
        return find_single_file(directory, extension)
    path = Path(provided)
    if not path.is_absolute():
        path = directory / path
    if not path.is_file():
        raise InputDiscoveryError(f"file not found: {path}")
    return path


def confirm(prompt: str = 'Proceed? [y/N]: ') -> bool:
    """Ask for confirmation on stdin; anything but yes cancels"""
    try:
        answer = input(prompt)
    except EOFError:
        return False
    return answer.strip().lower() in ('y', 'yes')


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='flac-cue-split',
        description='Split a single-file FLAC image into tracks using its cue sheet.')
    parser.add_argument('dir', nargs='?', default='.', metavar='DIR',
        help='Directory holding the FLAC image and cue sheet (default: current directory)')
    parser.add_argument('--flac', metavar='FILE', help='FLAC image to split')
    parser.add_argument('--cue', metavar='FILE', help='Cue sheet describing the tracks')
    parser.add_argument('--cue-encoding', metavar='ENCODING',
        help='Force the cue sheet encoding (utf-8 or windows-1251)')
    pictures = parser.add_mutually_exclusive_group()
    pictures.add_argument('--picture', metavar='FILE', help='Cover image to embed')
    pictures.add_argument('--no-picture', action='store_true',
        help='Do not look for a cover image')
    parser.add_argument('-o', '--overwrite', action='store_true',
        help='Overwrite existing output files')
    parser.add_argument('-c', '--compression-level', metavar='LEVEL',
        help="FLAC compression level 0-8 or 'max'")
    parser.add_argument('--pregap', choices=('previous', 'next', 'discard'),
        help='Where INDEX 00 pre-gap audio goes (default: next)')
    parser.add_argument('--title-fallback', metavar='FORMAT',
        help='Title for tracks without one, e.g. "Track {number:02d}"')
    parser.add_argument('--output-dir', metavar='DIR', help='Write tracks here instead of next to the FLAC')
    parser.add_argument('--config', metavar='FILE', help='Configuration file to use')
    parser.add_argument('--dump-config', action='store_true',
        help='Write the default configuration to the configuration file and exit')
    parser.add_argument('-y', '--yes', action='store_true', help='Do not ask for confirmation')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    return parser.parse_args(argv)


def apply_cli_overrides(config: dict, args: argparse.Namespace) -> dict:
    """Command line flags win over the configuration file and environment"""
    if args.cue_encoding:
        config['cue']['encoding'] = args.cue_encoding
    if args.picture:
        config['picture']['path'] = args.picture
    if args.no_picture:
        config['picture']['auto_detect'] = False
        config['picture']['path'] = None
    if args.overwrite:
        config['output']['overwrite'] = True
    if args.compression_level is not None:
        config['output']['compression_level'] = args.compression_level
    if args.pregap:
        config['output']['pregap'] = args.pregap
    if args.title_fallback:
        config['output']['title_fallback'] = args.title_fallback
    if args.output_dir:
        config['output']['directory'] = args.output_dir
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point"""
    args = parse_args(argv)
    setup_logging(verbose=args.verbose)
    logger = logging.getLogger(__name__)

    try:
        config_manager = ConfigManager(args.config)
        if args.dump_config:
            config_manager.dump_defaults()
            return 0

        config = config_manager.load_config()
        setup_logging(config['logging']['level'], args.verbose)
        config = apply_cli_overrides(config, args)

        base_dir = Path(args.dir)
        if not base_dir.is_dir():
            raise InputDiscoveryError(f"not a directory: {base_dir}")
        flac_path = resolve_input(base_dir, args.flac, 'flac')
        cue_path = resolve_input(base_dir, args.cue, 'cue')
        picture = config['picture'].get('path')
        if picture and not Path(picture).is_absolute():
            config['picture']['path'] = str(base_dir / picture)

        splitter = CueSplitter(config)
        plan = splitter.prepare(flac_path, cue_path, base_dir)
        print(render_plan(plan))

        if not args.yes and not confirm():
            logger.info("Cancelled, nothing was written")
            return 0

        splitter.execute(plan)
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130
    except CueSplitError as e:
        logger.error(f"{e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
