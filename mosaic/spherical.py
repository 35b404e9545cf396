"""
Map perspective images into spherical or cylindrical coordinates and
undo radial lens distortion.

warp_spherical_field() builds the inverse mapping: for each pixel of
the destination (angular) image it gives the location in the original
perspective image, which warp_local() then samples.
"""

import logging
from enum import Enum

import numpy as np

from .errors import InvalidArgument
from .image import Image, PixelKind, Shape
from .transform import Transform
from .warp import DEFAULT_CUBIC_A, InterpolationMode, warp_local

logger = logging.getLogger(__name__)


class Projection(Enum):
    SPHERICAL = 'spherical'
    CYLINDRICAL = 'cylindrical'

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidArgument(f"Unknown projection: {value!r}") from None


def _as_shape(shape):
    if isinstance(shape, Image):
        return shape.shape
    if isinstance(shape, Shape):
        return shape
    width, height = shape[0], shape[1]
    return Shape(width, height, shape[2] if len(shape) > 2 else 1)


def warp_spherical_field(src_shape, dst_shape, f, k1=0.0, k2=0.0, rotation=None,
                         projection=Projection.SPHERICAL):
    """
    Build the (u, v) coordinate field for spherical/cylindrical warping.

    For destination pixel (x, y) the angles are xf = (x - W/2) / f and
    yf = (y - H/2) / f. Spherical: theta = xf, phi = yf and the ray is
    (sin(theta) cos(phi), sin(phi), cos(theta) cos(phi)). Cylindrical:
    (sin(theta), yf, cos(theta)). The ray is rotated, projected onto
    z = 1, radially distorted by 1 + k1 r^2 + k2 r^4 and scaled back to
    source pixels about the source centre.

    Args:
        src_shape: Shape (or Image, or (width, height)) of the source
        dst_shape: Shape of the destination
        f: Focal length in pixels
        k1, k2: Radial distortion coefficients
        rotation: Transform acting on 3-D rays; identity when None
        projection: Projection

    Returns:
        2-band float Image of the destination size; rays that end up
        behind the camera map to (-1, -1) so they resample to zero
    """
    if f <= 0:
        raise InvalidArgument(f"Focal length must be positive, got {f}")
    src_shape = _as_shape(src_shape)
    dst_shape = _as_shape(dst_shape)
    projection = Projection.parse(projection)
    r = (rotation or Transform.identity()).matrix

    grid_y, grid_x = np.mgrid[0:dst_shape.height, 0:dst_shape.width].astype(np.float64)
    xf = (grid_x - 0.5 * dst_shape.width) / f
    yf = (grid_y - 0.5 * dst_shape.height) / f

    # Euclidean ray for each angular coordinate
    if projection is Projection.SPHERICAL:
        cos_phi = np.cos(yf)
        p = np.stack([np.sin(xf) * cos_phi, np.sin(yf), np.cos(xf) * cos_phi])
    else:
        p = np.stack([np.sin(xf), yf, np.cos(xf)])

    p = np.einsum('ij,jhw->ihw', r, p)

    # Project onto z = 1
    in_front = p[2] > 0
    with np.errstate(divide='ignore', invalid='ignore'):
        xt = np.where(in_front, p[0] / p[2], 0.0)
        yt = np.where(in_front, p[1] / p[2], 0.0)

    # Radial distortion
    r2 = xt * xt + yt * yt
    scale = 1.0 + k1 * r2 + k2 * r2 * r2
    xt *= scale
    yt *= scale

    xn = 0.5 * src_shape.width + xt * f
    yn = 0.5 * src_shape.height + yt * f
    xn[~in_front] = -1.0
    yn[~in_front] = -1.0

    logger.debug(f"{projection.value} field {dst_shape.width}x{dst_shape.height}, "
                 f"f={f}, k1={k1}, k2={k2}")
    return Image.from_array(np.stack([xn, yn], axis=2), kind=PixelKind.FLOAT, copy=False)


def tilt_rotation(degrees):
    """Rotation of the camera about its horizontal axis."""
    return Transform.rotation_x(degrees)


def warp_spherical(src, f, k1=0.0, k2=0.0, rotation=None,
                   projection=Projection.SPHERICAL,
                   interp=InterpolationMode.LINEAR, dst_shape=None,
                   cubic_a=DEFAULT_CUBIC_A):
    """
    Warp a perspective image into angular coordinates.

    Gray and RGB inputs are first converted to RGBA, so after warping
    the alpha band is zero exactly where no source data landed.

    Args:
        src: Source Image
        f: Focal length in pixels
        k1, k2: Radial distortion coefficients
        rotation: Optional 3-D rotation Transform
        projection: Projection
        interp: InterpolationMode
        dst_shape: Destination shape; the source shape when None
        cubic_a: Cubic kernel parameter

    Returns:
        Warped RGBA Image
    """
    if src.n_bands != 4:
        src = src.to_rgba()
    uv = warp_spherical_field(src.shape, dst_shape or src.shape, f, k1, k2,
                              rotation, projection)
    logger.info(f"Warping {src.width}x{src.height} image ({Projection.parse(projection).value}, f={f})")
    return warp_local(src, uv, relative=False, interp=interp, cubic_a=cubic_a)
