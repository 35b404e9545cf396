"""
Cylindrical/spherical panorama mosaics with NumPy, SciPy and Pillow.

This package builds a panorama from a sequence of overlapping
photographs whose feature points and correspondences were computed
elsewhere.

Main components:
- Transform: 3x3 homogeneous transforms
- warp_local / warp_global: inverse-warp resampling
- warp_spherical_field: spherical projection and radial undistortion
- FeatureAligner: RANSAC alignment from feature matches
- MosaicBlender: feathered blending, drift correction and trimming

Example usage:
    from mosaic import PanoramaBuilder, read_image, write_image
    from mosaic.pairlist import load_placements

    builder = PanoramaBuilder(blending_params={'blend_width': 50})
    panorama = builder.blend(load_placements('pairlist.txt'))
    write_image('panorama.png', panorama)
"""

__version__ = '1.0.0'

from .errors import (
    AlignmentFailure,
    InvalidArgument,
    MosaicError,
    MosaicIOError,
    ShapeMismatchError,
    SingularMatrixError,
)
from .image import BorderMode, Image, PixelKind, Shape
from .transform import Transform
from .warp import InterpolationMode, warp_global, warp_local
from .spherical import Projection, warp_spherical, warp_spherical_field
from .features import Feature, FeatureMatch, FeatureSet, read_feature_matches
from .align import FeatureAligner, MotionModel
from .blend import ImagePosition, MosaicBlender
from .panorama import PanoramaBuilder
from .image_io import read_image, write_image, read_images

__all__ = [
    'AlignmentFailure',
    'InvalidArgument',
    'MosaicError',
    'MosaicIOError',
    'ShapeMismatchError',
    'SingularMatrixError',
    'BorderMode',
    'Image',
    'PixelKind',
    'Shape',
    'Transform',
    'InterpolationMode',
    'warp_global',
    'warp_local',
    'Projection',
    'warp_spherical',
    'warp_spherical_field',
    'Feature',
    'FeatureMatch',
    'FeatureSet',
    'read_feature_matches',
    'FeatureAligner',
    'MotionModel',
    'ImagePosition',
    'MosaicBlender',
    'PanoramaBuilder',
    'read_image',
    'write_image',
    'read_images',
]
