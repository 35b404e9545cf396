#!/usr/bin/env python3
"""
Mosaic Panorama CLI
Command-line interface for building cylindrical/spherical panoramas.

Usage:
    python -m mosaic.cli warp input.png output.png f [k1 k2]
    python -m mosaic.cli align input1.f input2.f matches.txt nRANSAC RANSACthresh [sift]
    python -m mosaic.cli blend pairlist.txt output.png blendWidth
    python -m mosaic.cli script script.cmd
"""

import argparse
import logging
import os
import shlex
import sys
import time

from .align import FeatureAligner, placement_from_alignment
from .blend import MosaicBlender
from .config import load_config
from .errors import AlignmentFailure, InvalidArgument, MosaicError, MosaicIOError
from .features import FeatureSet, read_feature_matches
from .image_io import read_image, write_image
from .logger import setup_logger
from .pairlist import load_placements
from .spherical import tilt_rotation, warp_spherical

logger = logging.getLogger(__name__)

EXIT_ERROR = 1
EXIT_ALIGNMENT_FAILURE = 2

# Scripts currently being replayed, to refuse self-inclusion
_active_scripts = set()


def build_parser():
    """Argument parser with one sub-command per pipeline stage."""
    parser = argparse.ArgumentParser(
        prog='mosaic-pano',
        description='Build a panorama from overlapping photographs'
    )
    parser.add_argument('--config', help='JSON file overriding default parameters')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    parser.add_argument('--log-file', help='Also write the log to this file')

    sub = parser.add_subparsers(dest='command')

    warp = sub.add_parser('warp', help='Warp an image to spherical coordinates and undo radial distortion')
    warp.add_argument('input', help='Input image')
    warp.add_argument('output', help='Output image')
    warp.add_argument('f', type=float, nargs='?', help='Focal length in pixels')
    warp.add_argument('k1', type=float, nargs='?', help='Radial distortion k1 (default: 0)')
    warp.add_argument('k2', type=float, nargs='?', help='Radial distortion k2 (default: 0)')
    warp.add_argument('--projection', choices=['spherical', 'cylindrical'],
                      help='Projection model (default: spherical)')
    warp.add_argument('--interp', choices=['nearest', 'linear', 'cubic'],
                      help='Interpolation mode (default: linear)')
    warp.add_argument('--tilt', type=float, help='Camera tilt in degrees (default: 0)')

    align = sub.add_parser('align', help='Align two images from feature matches with RANSAC')
    align.add_argument('features1', help='Feature file of the first image')
    align.add_argument('features2', help='Feature file of the second image')
    align.add_argument('matchfile', help='Feature correspondence file')
    align.add_argument('n_ransac', type=int, nargs='?', help='Number of RANSAC iterations')
    align.add_argument('ransac_thresh', type=float, nargs='?',
                       help='RANSAC (squared) distance threshold for inliers')
    align.add_argument('sift', nargs='?', choices=['sift'],
                       help="The word 'sift' to read Lowe's SIFT keypoint files")
    align.add_argument('--model', choices=['translate', 'rotate'],
                       help='Motion model (default: translate)')
    align.add_argument('--seed', type=int, help='Random seed for RANSAC')

    blend = sub.add_parser('blend', help='Blend a chain of images given pairwise translations')
    blend.add_argument('pairlist', help="File of 'file1 file2 dx dy' lines")
    blend.add_argument('output', help='Output mosaic image')
    blend.add_argument('blend_width', type=float, nargs='?',
                       help='Width of the horizontal blending function')

    script = sub.add_parser('script', help='Run commands from a script file')
    script.add_argument('script', help="Script file; one command per line, '//' or '#' comments")

    return parser


def cmd_warp(args, cfg):
    src = read_image(args.input)
    tilt = cfg['tilt']
    rotation = tilt_rotation(tilt) if tilt else None
    dst = warp_spherical(src, cfg['focal_length'], cfg['k1'], cfg['k2'],
                         rotation=rotation, projection=cfg['projection'],
                         interp=cfg['interpolation'], cubic_a=cfg['cubic_a'])
    _ensure_parent(args.output)
    write_image(args.output, dst)
    print(f"Warped image saved to: {args.output}")
    return 0


def cmd_align(args, cfg):
    sift = args.sift == 'sift'
    f1 = FeatureSet.from_file(args.features1, sift=sift)
    f2 = FeatureSet.from_file(args.features2, sift=sift)
    matches = read_feature_matches(args.matchfile)

    aligner = FeatureAligner(
        n_ransac=cfg['n_ransac'],
        ransac_thresh=cfg['ransac_thresh'],
        motion_model=cfg['motion_model'],
        focal_length=cfg['focal_length'],
        seed=cfg['seed'],
    )
    result = aligner.align_pair(f1, f2, matches)
    dx, dy = placement_from_alignment(result.transform).translation_part
    print(f"{dx:.2f} {dy:.2f}")
    return 0


def cmd_blend(args, cfg):
    placements = load_placements(args.pairlist)
    blender = MosaicBlender(blend_width=cfg['blend_width'])
    result = blender.blend_images(placements)
    _ensure_parent(args.output)
    write_image(args.output, result)
    print(f"Mosaic saved to: {args.output} ({result.width}x{result.height})")
    return 0


def cmd_script(args, cfg):
    """Run each line of a script file as a command, stopping at the first failure."""
    script_path = os.path.abspath(args.script)
    if script_path in _active_scripts:
        raise InvalidArgument(f"Script {args.script} runs itself recursively")

    try:
        with open(args.script, 'r') as stream:
            lines = stream.readlines()
    except OSError as e:
        raise MosaicIOError(f"Could not open {args.script}: {e}") from e

    _active_scripts.add(script_path)
    try:
        return _run_script_lines(args, lines)
    finally:
        _active_scripts.discard(script_path)


def _run_script_lines(args, lines):
    for lineno, line in enumerate(lines, 1):
        line = line.strip()
        if not line or line.startswith('//') or line.startswith('#'):
            continue
        print(line, file=sys.stderr)
        argv = shlex.split(line)
        # Allow lines written for the launcher script ("mosaic-pano warp ...")
        if argv[0] in ('mosaic-pano', 'mosaic_panorama.py'):
            argv = argv[1:]
        if args.config and '--config' not in argv:
            argv = ['--config', args.config] + argv
        if args.verbose and not {'-v', '--verbose'} & set(argv):
            argv = ['-v'] + argv
        try:
            code = main(argv)
        except SystemExit as e:
            code = e.code if isinstance(e.code, int) else EXIT_ERROR
        if code:
            logger.error(f"{args.script}:{lineno}: command failed with status {code}")
            return code
    return 0


COMMANDS = {
    'warp': cmd_warp,
    'align': cmd_align,
    'blend': cmd_blend,
    'script': cmd_script,
}


def _ensure_parent(path):
    output_dir = os.path.dirname(path)
    if output_dir and not os.path.exists(output_dir):
        os.makedirs(output_dir)


def _command_config(args):
    """Config values for this command: defaults < --config file < arguments."""
    overrides = {
        'focal_length': getattr(args, 'f', None),
        'k1': getattr(args, 'k1', None),
        'k2': getattr(args, 'k2', None),
        'projection': getattr(args, 'projection', None),
        'interpolation': getattr(args, 'interp', None),
        'tilt': getattr(args, 'tilt', None),
        'n_ransac': getattr(args, 'n_ransac', None),
        'ransac_thresh': getattr(args, 'ransac_thresh', None),
        'motion_model': getattr(args, 'model', None),
        'seed': getattr(args, 'seed', None),
        'blend_width': getattr(args, 'blend_width', None),
    }
    return load_config(args.config, **overrides)


def main(argv=None):
    """Main function for CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logger('mosaic', logging.DEBUG if args.verbose else logging.INFO, args.log_file)

    if args.command is None:
        parser.print_help()
        return EXIT_ERROR

    start_time = time.time()
    try:
        cfg = _command_config(args)
        code = COMMANDS[args.command](args, cfg)
    except AlignmentFailure as e:
        print(f"Alignment failed: {e}", file=sys.stderr)
        return EXIT_ALIGNMENT_FAILURE
    except MosaicError as e:
        print(f"Error during {args.command}: {e}", file=sys.stderr)
        return EXIT_ERROR

    logger.debug(f"{args.command} finished in {time.time() - start_time:.2f} seconds")
    return code


if __name__ == '__main__':
    sys.exit(main())
