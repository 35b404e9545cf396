"""
Pair lists: one line per adjacent image pair, `file1 file2 dx dy`,
where (dx, dy) places file2 in file1's frame.
"""

import logging
import os

from .blend import ImagePosition
from .errors import MosaicIOError
from .image_io import read_image
from .transform import Transform

logger = logging.getLogger(__name__)


def read_pair_list(path):
    """
    Parse a pair list file.

    Blank lines and lines starting with '#' are ignored. Relative image
    paths are resolved against the pair list's directory.

    Returns:
        List of (file1, file2, dx, dy)
    """
    try:
        with open(path, 'r') as fh:
            lines = fh.readlines()
    except OSError as e:
        raise MosaicIOError(f"Could not open the file {path}: {e}") from e

    base = os.path.dirname(os.path.abspath(path))
    pairs = []
    for lineno, line in enumerate(lines, 1):
        fields = line.split()
        if not fields or fields[0].startswith('#'):
            continue
        if len(fields) != 4:
            raise MosaicIOError(f"{path}:{lineno}: expected 'file1 file2 dx dy', got {line.strip()!r}")
        try:
            dx, dy = float(fields[2]), float(fields[3])
        except ValueError:
            raise MosaicIOError(f"{path}:{lineno}: bad translation in {line.strip()!r}") from None
        file1, file2 = (os.path.join(base, f) for f in fields[:2])
        pairs.append((file1, file2, dx, dy))

    if not pairs:
        raise MosaicIOError(f"{path}: no image pairs found")
    return pairs


def chain_placements(pairs):
    """
    Turn relative pair translations into absolute placements.

    The first image sits at the identity; each following image is placed
    at the previous position composed with its relative translation.

    Returns:
        List of (path, Transform), one entry per image
    """
    placements = []
    position = Transform.identity()
    for i, (file1, file2, dx, dy) in enumerate(pairs):
        if i == 0:
            placements.append((file1, position))
        elif placements[-1][0] != file1:
            logger.warning(f"Pair {i + 1} starts with {file1}, previous pair ended with "
                           f"{placements[-1][0]}")
        position = position * Transform.translation(dx, dy)
        placements.append((file2, position))
    return placements


def load_placements(path, loader=read_image):
    """
    Read a pair list and load every image it names.

    Returns:
        List of ImagePosition in chain order
    """
    positions = []
    for filename, transform in chain_placements(read_pair_list(path)):
        positions.append(ImagePosition(loader(filename), transform, name=os.path.basename(filename)))
    logger.info(f"Loaded {len(positions)} placed images from {path}")
    return positions
