"""
Cylindrical/spherical panorama pipeline built from the individual stages.
"""

import logging

from .align import FeatureAligner, placement_from_alignment
from .blend import ImagePosition, MosaicBlender
from .errors import InvalidArgument
from .spherical import Projection, tilt_rotation, warp_spherical
from .transform import Transform
from .warp import DEFAULT_CUBIC_A, InterpolationMode

logger = logging.getLogger(__name__)


class PanoramaBuilder:
    """
    Complete panorama pipeline.

    This class coordinates all components:
    1. Spherical warping with radial distortion removal
    2. RANSAC alignment of adjacent images from feature matches
    3. Feathered blending, drift correction and trimming
    """

    def __init__(self,
                 warp_params=None,
                 ransac_params=None,
                 blending_params=None):
        """
        Initialize Panorama Builder.

        Args:
            warp_params: dict with focal_length, k1, k2, projection, tilt,
                interpolation, cubic_a
            ransac_params: Parameters for FeatureAligner
            blending_params: Parameters for MosaicBlender
        """
        warp_params = dict(warp_params or {})
        self.focal_length = float(warp_params.pop('focal_length', 595.0))
        self.k1 = float(warp_params.pop('k1', 0.0))
        self.k2 = float(warp_params.pop('k2', 0.0))
        self.projection = Projection.parse(warp_params.pop('projection', Projection.SPHERICAL))
        tilt = float(warp_params.pop('tilt', 0.0))
        self.rotation = tilt_rotation(tilt) if tilt else None
        self.interpolation = InterpolationMode.parse(
            warp_params.pop('interpolation', InterpolationMode.LINEAR))
        self.cubic_a = float(warp_params.pop('cubic_a', DEFAULT_CUBIC_A))
        if warp_params:
            raise InvalidArgument(f"Unknown warp parameters: {', '.join(sorted(warp_params))}")

        ransac_params = dict(ransac_params or {})
        ransac_params.setdefault('focal_length', self.focal_length)
        self.aligner = FeatureAligner(**ransac_params)

        self.blender = MosaicBlender(**(blending_params or {}))

    def warp(self, image):
        """Warp one image into the panorama's angular coordinates."""
        return warp_spherical(image, self.focal_length, self.k1, self.k2,
                              rotation=self.rotation, projection=self.projection,
                              interp=self.interpolation, cubic_a=self.cubic_a)

    def align(self, f1, f2, matches):
        """
        Align one adjacent pair.

        Returns:
            Transform placing the second image in the first image's frame
        """
        result = self.aligner.align_pair(f1, f2, matches)
        return placement_from_alignment(result.transform)

    def blend(self, placements):
        return self.blender.blend_images(placements)

    def chain(self, images, relative):
        """
        Absolute placements from relative ones.

        Args:
            images: N images, left to right
            relative: N - 1 transforms, each placing image i + 1 in
                image i's frame

        Returns:
            List of ImagePosition
        """
        if len(relative) != len(images) - 1:
            raise InvalidArgument(
                f"Need {len(images) - 1} relative placements for {len(images)} images, "
                f"got {len(relative)}")
        position = Transform.identity()
        placements = [ImagePosition(images[0], position, name='image 1')]
        for i, M in enumerate(relative):
            position = position * M
            placements.append(ImagePosition(images[i + 1], position, name=f'image {i + 2}'))
        return placements

    def build(self, images, feature_sets, match_lists, warp=True):
        """
        Run the whole pipeline on in-memory data.

        Args:
            images: List of Images, left to right
            feature_sets: One FeatureSet per image, in the coordinates of
                the warped image
            match_lists: N - 1 match lists; entry i matches image i to i + 1
            warp: Warp the images first (set False if already warped)

        Returns:
            Final mosaic Image
        """
        if not images:
            raise InvalidArgument("No images provided")
        if len(feature_sets) != len(images) or len(match_lists) != len(images) - 1:
            raise InvalidArgument(
                f"Expected {len(images)} feature sets and {len(images) - 1} match lists, "
                f"got {len(feature_sets)} and {len(match_lists)}")

        logger.info(f"Building panorama from {len(images)} images")
        if warp:
            images = [self.warp(img) for img in images]

        relative = []
        for i, matches in enumerate(match_lists):
            logger.info(f"Aligning image {i + 1} with image {i + 2}")
            relative.append(self.align(feature_sets[i], feature_sets[i + 1], matches))

        return self.blend(self.chain(images, relative))
