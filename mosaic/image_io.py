"""
Image I/O utilities using PIL (Pillow).
"""

import logging
import os

import numpy as np
from PIL import Image as PILImage

from .errors import MosaicIOError, ShapeMismatchError
from .image import Image, PixelKind

logger = logging.getLogger(__name__)

_MODES = {1: 'L', 3: 'RGB', 4: 'RGBA'}

# Formats Pillow writes without an alpha channel
_OPAQUE_FORMATS = {'JPEG', 'PPM'}


def read_image(filepath):
    """
    Read image from file.

    Args:
        filepath: Path to image file

    Returns:
        8-bit Image with 1 (gray), 3 (RGB) or 4 (RGBA) bands
    """
    try:
        with PILImage.open(filepath) as img:
            # Convert to a supported mode if needed
            if img.mode not in _MODES.values():
                has_alpha = 'A' in img.mode or 'transparency' in img.info
                img = img.convert('RGBA' if has_alpha else 'RGB')

            img_array = np.array(img)
    except (OSError, ValueError) as e:
        raise MosaicIOError(f"Failed to read image from {filepath}: {e}") from e

    image = Image.from_array(img_array, kind=PixelKind.BYTE, copy=False)
    logger.debug(f"Read {filepath}: {image!r}")
    return image


def write_image(filepath, image):
    """
    Write image to file.

    Args:
        filepath: Path to save image
        image: Image (or array) with 1, 3 or 4 bands; values are
            clipped to 0..255. The alpha band is dropped for formats
            that cannot store it (JPEG).
    """
    if not isinstance(image, Image):
        image = Image.from_array(image)
    if image.n_bands not in _MODES:
        raise ShapeMismatchError(
            f"Cannot save a {image.n_bands}-band image to {filepath}")

    pixels = image.pixels
    if pixels.dtype != np.uint8:
        pixels = image.converted(PixelKind.BYTE).pixels

    if image.n_bands == 1:
        pixels = pixels[:, :, 0]
    elif image.n_bands == 4 and _format_for(filepath) in _OPAQUE_FORMATS:
        pixels = pixels[:, :, :3]

    try:
        PILImage.fromarray(np.ascontiguousarray(pixels)).save(filepath)
    except (OSError, ValueError, KeyError) as e:
        raise MosaicIOError(f"Failed to write image to {filepath}: {e}") from e
    logger.debug(f"Wrote {filepath}: {image!r}")


def _format_for(filepath):
    ext = os.path.splitext(str(filepath))[1].lower()
    return PILImage.registered_extensions().get(ext)


def read_images(filepaths):
    """
    Read multiple images.

    Args:
        filepaths: List of image file paths

    Returns:
        List of Images
    """
    return [read_image(filepath) for filepath in filepaths]
