"""
Inverse-warp resampling of images, using only NumPy.

For every destination pixel the source is sampled at a given
coordinate (an explicit per-pixel coordinate field for warp_local,
a global 3x3 transform for warp_global). If any source pixel in the
interpolation footprint lies outside the source image, every band of
the destination pixel is set to zero.
"""

import functools
import logging
from enum import Enum

import numpy as np

from .errors import InvalidArgument, ShapeMismatchError
from .image import Image, PixelKind, clamp_cast
from .transform import Transform

logger = logging.getLogger(__name__)

CUBIC_LUT_SIZE = 256
DEFAULT_CUBIC_A = -0.5


class InterpolationMode(Enum):
    """Interpolation kernels; the value is the footprint width minus one."""

    NEAREST = 0
    LINEAR = 1
    CUBIC = 3

    @property
    def extents(self):
        """(negative, positive) footprint extent around floor(coordinate)."""
        o0 = self.value // 2
        return o0, self.value - o0

    @classmethod
    def parse(cls, value):
        """Accept a member, its value, or a name such as 'linear'/'bilinear'."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            name = value.strip().upper()
            aliases = {'BILINEAR': 'LINEAR', 'BICUBIC': 'CUBIC', 'NN': 'NEAREST'}
            name = aliases.get(name, name)
            if name in cls.__members__:
                return cls[name]
        else:
            try:
                return cls(value)
            except ValueError:
                pass
        raise InvalidArgument(f"Unknown interpolation mode: {value!r}")


def _keys_kernel(t, a):
    """Piecewise cubic kernel whose slope at |t| = 1 is `a`."""
    t = np.abs(t)
    t2 = t * t
    t3 = t2 * t
    inner = (a + 2.0) * t3 - (a + 3.0) * t2 + 1.0
    outer = a * t3 - 5.0 * a * t2 + 8.0 * a * t - 4.0 * a
    return np.where(t <= 1.0, inner, np.where(t < 2.0, outer, 0.0))


@functools.lru_cache(maxsize=8)
def cubic_lut(a=DEFAULT_CUBIC_A):
    """
    Lookup table of cubic interpolation weights.

    Row i holds the four tap weights for the fractional offset
    i / CUBIC_LUT_SIZE, for the taps at -1, 0, +1, +2. The table is
    built once per distinct `a`.

    Args:
        a: Kernel slope at |t| = 1 (-0.5 gives Catmull-Rom)

    Returns:
        Read-only array (CUBIC_LUT_SIZE x 4)
    """
    f = np.arange(CUBIC_LUT_SIZE, dtype=np.float64) / CUBIC_LUT_SIZE
    taps = np.stack([1.0 + f, f, 1.0 - f, 2.0 - f], axis=1)
    lut = _keys_kernel(taps, float(a))
    lut.setflags(write=False)
    logger.debug(f"Built cubic LUT for a={a}")
    return lut


def sample(src, xs, ys, interp=InterpolationMode.LINEAR, cubic_a=DEFAULT_CUBIC_A):
    """
    Sample an image at arbitrary (x, y) source coordinates.

    Args:
        src: Source Image
        xs: X coordinates (any shape)
        ys: Y coordinates (same shape as xs)
        interp: InterpolationMode
        cubic_a: Cubic kernel parameter

    Returns:
        Array of shape xs.shape + (n_bands,) in the source dtype; pixels
        whose footprint leaves the source are zero in every band
    """
    interp = InterpolationMode.parse(interp)
    pixels = src.pixels
    h, w, n_bands = pixels.shape
    xs = np.asarray(xs, dtype=np.float64)
    ys = np.asarray(ys, dtype=np.float64)
    if xs.shape != ys.shape:
        raise ShapeMismatchError(f"Coordinate arrays differ: {xs.shape} vs {ys.shape}")

    finite = np.isfinite(xs) & np.isfinite(ys)
    xs = np.where(finite, xs, -1.0)
    ys = np.where(finite, ys, -1.0)

    # Round down pixel coordinates (kept in a safe integer range)
    x = np.clip(np.floor(xs), -2 ** 30, 2 ** 30).astype(np.int64)
    y = np.clip(np.floor(ys), -2 ** 30, 2 ** 30).astype(np.int64)

    # Check if all participating pixels are in bounds
    o0, o1 = interp.extents
    valid = finite & (x - o0 >= 0) & (y - o0 >= 0) & (x + o1 < w) & (y + o1 < h)
    x = np.where(valid, x, o0)
    y = np.where(valid, y, o0)

    if interp is InterpolationMode.NEAREST:
        out = pixels[y, x].copy()
        out[~valid] = 0
        return out

    fx = np.where(valid, xs - x, 0.0)[..., np.newaxis]
    fy = np.where(valid, ys - y, 0.0)[..., np.newaxis]

    if interp is InterpolationMode.LINEAR:
        p00 = pixels[y, x].astype(np.float64)
        p01 = pixels[y, x + 1].astype(np.float64)
        p10 = pixels[y + 1, x].astype(np.float64)
        p11 = pixels[y + 1, x + 1].astype(np.float64)
        h1 = p00 + fx * (p01 - p00)
        h2 = p10 + fx * (p11 - p10)
        values = h1 + fy * (h2 - h1)
    else:
        lut = cubic_lut(float(cubic_a))
        cx = lut[np.minimum((fx[..., 0] * CUBIC_LUT_SIZE).astype(np.int64), CUBIC_LUT_SIZE - 1)]
        cy = lut[np.minimum((fy[..., 0] * CUBIC_LUT_SIZE).astype(np.int64), CUBIC_LUT_SIZE - 1)]
        values = np.zeros(xs.shape + (n_bands,), dtype=np.float64)
        for j in range(4):
            row = np.zeros_like(values)
            for i in range(4):
                tap = pixels[y + j - 1, x + i - 1].astype(np.float64)
                row += cx[..., i:i + 1] * tap
            values += cy[..., j:j + 1] * row

    out = clamp_cast(values, PixelKind.from_dtype(pixels.dtype))
    out[~valid] = 0
    return out


def warp_local(src, uv, relative=False, interp=InterpolationMode.LINEAR,
               cubic_a=DEFAULT_CUBIC_A):
    """
    Resample `src` through a per-pixel coordinate field.

    Args:
        src: Source Image
        uv: 2-band float Image; band 0/1 hold the source x/y for each
            destination pixel
        relative: If True, uv holds offsets added to the destination
            pixel's own coordinates (a flow field)
        interp: InterpolationMode
        cubic_a: Cubic kernel parameter

    Returns:
        New Image with uv's width/height and src's bands and kind
    """
    if uv.n_bands != 2:
        raise ShapeMismatchError(f"Coordinate field must have 2 bands, got {uv.n_bands}")

    xs = uv.pixels[:, :, 0].astype(np.float64)
    ys = uv.pixels[:, :, 1].astype(np.float64)
    if relative:
        grid_y, grid_x = np.mgrid[0:uv.height, 0:uv.width]
        xs = xs + grid_x
        ys = ys + grid_y

    logger.debug(f"warp_local {src!r} -> {uv.width}x{uv.height} ({InterpolationMode.parse(interp).name})")
    out = sample(src, xs, ys, interp, cubic_a)
    return Image.from_array(out, kind=src.kind, copy=False)


def coordinate_arrays(M, width, height):
    """
    Source coordinates that the destination->source transform M assigns
    to each pixel of a width x height grid.

    The homogeneous divide is done per pixel, so projective transforms
    are handled; points mapped to z == 0 come back as NaN.

    Returns:
        xs, ys: Arrays (height x width)
    """
    m = M.matrix if isinstance(M, Transform) else np.asarray(M, dtype=np.float64)
    grid_y, grid_x = np.mgrid[0:height, 0:width].astype(np.float64)

    X = m[0, 0] * grid_x + m[0, 1] * grid_y + m[0, 2]
    Y = m[1, 0] * grid_x + m[1, 1] * grid_y + m[1, 2]
    if m[2, 0] == 0.0 and m[2, 1] == 0.0:
        if m[2, 2] == 0.0:
            nan = np.full_like(X, np.nan)
            return nan, nan.copy()
        return X / m[2, 2], Y / m[2, 2]

    Z = m[2, 0] * grid_x + m[2, 1] * grid_y + m[2, 2]
    with np.errstate(divide='ignore', invalid='ignore'):
        zi = np.where(Z != 0.0, 1.0 / Z, np.nan)
    return X * zi, Y * zi


def coordinate_field(M, width, height):
    """The 2-band float coordinate field induced by transform M."""
    xs, ys = coordinate_arrays(M, width, height)
    return Image.from_array(np.stack([xs, ys], axis=2), kind=PixelKind.FLOAT, copy=False)


def warp_global(src, M, shape=None, interp=InterpolationMode.LINEAR,
                cubic_a=DEFAULT_CUBIC_A):
    """
    Resample `src` through a global transform.

    Args:
        src: Source Image
        M: Transform mapping destination pixels to source pixels
            (rigid, affine or projective)
        shape: (width, height) or Shape of the destination; src's size
            when None
        interp: InterpolationMode
        cubic_a: Cubic kernel parameter

    Returns:
        New Image of the requested size with src's bands and kind
    """
    if shape is None:
        width, height = src.width, src.height
    else:
        width, height = shape[0], shape[1]
    if width <= 0 or height <= 0:
        raise InvalidArgument(f"Invalid destination size: {width}x{height}")

    logger.debug(f"warp_global {src!r} -> {width}x{height} via {M!r}")
    xs, ys = coordinate_arrays(M, width, height)
    out = sample(src, xs, ys, interp, cubic_a)
    return Image.from_array(out, kind=src.kind, copy=False)
