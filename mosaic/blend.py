"""
Feathered blending of a sequence of placed images into one mosaic,
followed by drift correction and trimming.
"""

import logging

import numpy as np

from .errors import InvalidArgument, ShapeMismatchError
from .image import Image, PixelKind, clamp_cast
from .transform import Transform
from .warp import InterpolationMode, coordinate_arrays, warp_global

logger = logging.getLogger(__name__)


class ImagePosition:
    """
    An image and the transform placing its pixels in the mosaic frame.

    Args:
        image: Image
        position: Transform from image pixels to mosaic coordinates
        mask: Optional boolean (height x width) array of valid pixels
        name: Optional label used in log messages
    """

    def __init__(self, image, position=None, mask=None, name=None):
        self.image = image
        self.position = position if position is not None else Transform.identity()
        self.mask = None if mask is None else np.asarray(mask, dtype=bool)
        self.name = name

    def validity(self):
        """
        Boolean (height x width) map of the pixels that carry data.

        An explicit mask wins; otherwise the alpha band of an RGBA image
        is used; otherwise a pixel counts as empty when all of its
        colour bands are exactly zero.
        """
        img = self.image
        if self.mask is not None:
            if self.mask.shape != (img.height, img.width):
                raise ShapeMismatchError(
                    f"Mask shape {self.mask.shape} does not match image "
                    f"{img.width}x{img.height}")
            return self.mask
        if img.n_bands == 4:
            return img.pixels[:, :, 3] > 0
        return np.any(img.pixels != 0, axis=2)

    def __repr__(self):
        return f"ImagePosition({self.name or self.image!r}, {self.position!r})"


class Composite:
    """Normalized, uncropped mosaic and the midpoints used for trimming."""

    def __init__(self, image, start, end, source_width, source_height):
        self.image = image
        self.x_init, self.y_init = start
        self.x_final, self.y_final = end
        self.source_width = source_width
        self.source_height = source_height


def image_bounding_box(shape, M):
    """
    Integer bounding box of an image's corners after transform M.

    Args:
        shape: Shape (or Image) of the image
        M: Transform into the mosaic frame

    Returns:
        (min_x, min_y, max_x, max_y), inclusive
    """
    width, height = shape[0], shape[1]
    corners = np.array([
        [0, 0],
        [width - 1, 0],
        [0, height - 1],
        [width - 1, height - 1],
    ], dtype=np.float64)
    corners_transformed = M.apply_points(corners)

    x_min = int(np.floor(np.min(corners_transformed[:, 0])))
    y_min = int(np.floor(np.min(corners_transformed[:, 1])))
    x_max = int(np.ceil(np.max(corners_transformed[:, 0])))
    y_max = int(np.ceil(np.max(corners_transformed[:, 1])))
    return x_min, y_min, x_max, y_max


def feather_weights(x_src, width, blend_width):
    """
    Horizontal feathering weight for source columns.

    Full weight in the interior, ramping linearly down towards the left
    and right edges of the source over `blend_width` pixels. Edge
    columns keep a small positive weight so a lone image is never left
    unpainted.
    """
    x_src = np.asarray(x_src, dtype=np.float64)
    dist = np.minimum(x_src, (width - 1) - x_src)
    if blend_width <= 0:
        return np.where(dist >= 0, 1.0, 0.0)
    return np.clip((dist + 1.0) / (blend_width + 1.0), 0.0, 1.0)


def _colour_bands(n_bands):
    return 3 if n_bands == 4 else n_bands


class MosaicBlender:
    """
    Blend placed images with a horizontal feathering function.

    The accumulator holds the weighted colour sums plus one extra band
    with the running weight; normalizing divides one by the other.
    """

    def __init__(self, blend_width=50.0):
        """
        Args:
            blend_width: Width in pixels of the linear ramp at the left
                and right edge of every image
        """
        if blend_width < 0:
            raise InvalidArgument(f"Blend width must be >= 0, got {blend_width}")
        self.blend_width = float(blend_width)

    def accumulate(self, placement, acc, M):
        """
        Add a weighted copy of one placed image into the accumulator.

        Args:
            placement: ImagePosition
            acc: Float array (H x W x colour_bands + 1), updated in place
            M: Transform from image pixels to accumulator pixels

        Returns:
            Number of accumulator pixels that received a contribution
        """
        img = placement.image
        h, w = img.height, img.width
        n_colour = acc.shape[2] - 1

        min_x, min_y, max_x, max_y = image_bounding_box(img.shape, M)
        x0, y0 = max(min_x, 0), max(min_y, 0)
        x1, y1 = min(max_x, acc.shape[1] - 1), min(max_y, acc.shape[0] - 1)
        if x1 < x0 or y1 < y0:
            return 0

        # Inverse map the bounding box into the source
        M_inv = M.inverse() * Transform.translation(x0, y0)
        xs, ys = coordinate_arrays(M_inv, x1 - x0 + 1, y1 - y0 + 1)
        inside = (np.isfinite(xs) & np.isfinite(ys) &
                  (xs >= 0) & (xs <= w - 1) & (ys >= 0) & (ys <= h - 1))
        xs = np.where(inside, xs, 0.0)
        ys = np.where(inside, ys, 0.0)

        xf = np.floor(xs).astype(np.int64)
        yf = np.floor(ys).astype(np.int64)
        xc = np.minimum(xf + 1, w - 1)
        yc = np.minimum(yf + 1, h - 1)

        # Skip pixels whose footprint touches an empty source pixel
        valid = placement.validity()
        ok = inside & valid[yf, xf] & valid[yf, xc] & valid[yc, xf] & valid[yc, xc]

        src = img.pixels[:, :, :n_colour].astype(np.float64)
        fx = (xs - xf)[..., np.newaxis]
        fy = (ys - yf)[..., np.newaxis]
        top = src[yf, xf] + fx * (src[yf, xc] - src[yf, xf])
        bottom = src[yc, xf] + fx * (src[yc, xc] - src[yc, xf])
        values = top + fy * (bottom - top)

        weight = feather_weights(xs, w, self.blend_width) * ok
        region = acc[y0:y1 + 1, x0:x1 + 1]
        region[:, :, :n_colour] += weight[..., np.newaxis] * values
        region[:, :, n_colour] += weight

        painted = int(np.count_nonzero(weight))
        logger.debug(f"Accumulated {placement!r}: box ({x0}, {y0})-({x1}, {y1}), "
                     f"{painted} pixels")
        return painted

    @staticmethod
    def normalize(acc, kind=PixelKind.BYTE, n_bands=None):
        """
        Divide the colour sums by the accumulated weight.

        Pixels with zero total weight stay zero. For 4-band output the
        alpha band is opaque exactly where some weight landed.

        Returns:
            Image of the accumulator's size
        """
        n_colour = acc.shape[2] - 1
        n_bands = n_bands or n_colour
        weight = acc[:, :, n_colour]
        painted = weight > 0

        out = np.zeros(acc.shape[:2] + (n_bands,), dtype=np.float64)
        out[painted, :n_colour] = acc[painted, :n_colour] / weight[painted][:, np.newaxis]
        if n_bands == 4:
            out[:, :, 3] = np.where(painted, 1.0 if kind is PixelKind.FLOAT else 255.0, 0.0)
        return Image.from_array(clamp_cast(out, kind), kind=kind, copy=False)

    def composite(self, placements):
        """
        Blend all placements into an uncropped mosaic.

        Args:
            placements: Ordered list of ImagePosition (left to right)

        Returns:
            Composite
        """
        if not placements:
            raise InvalidArgument("No images to blend")

        first = placements[0].image
        n_bands = first.n_bands
        for p in placements[1:]:
            if p.image.n_bands != n_bands:
                raise ShapeMismatchError(
                    f"Cannot blend {p.image.n_bands}-band {p!r} with {n_bands}-band images")

        # Bounding box of the whole mosaic
        boxes = [image_bounding_box(p.image.shape, p.position) for p in placements]
        min_x = min(b[0] for b in boxes)
        min_y = min(b[1] for b in boxes)
        max_x = max(b[2] for b in boxes)
        max_y = max(b[3] for b in boxes)
        width = max_x - min_x + 1
        height = max_y - min_y + 1
        logger.info(f"Blending {len(placements)} images into {width}x{height} mosaic")

        n_colour = _colour_bands(n_bands)
        acc = np.zeros((height, width, n_colour + 1), dtype=np.float64)
        offset = Transform.translation(-min_x, -min_y)

        for p in placements:
            self.accumulate(p, acc, offset * p.position)

        image = self.normalize(acc, first.kind, n_bands)

        # Mid points of the first and last image in composite coordinates
        mid = (0.5 * first.width, 0.5 * first.height)
        start = (offset * placements[0].position).apply(*mid)
        last = placements[-1].image
        end = (offset * placements[-1].position).apply(0.5 * last.width, 0.5 * last.height)

        return Composite(image, start, end, first.width, first.height)

    @staticmethod
    def drift_transform(comp):
        """
        Affine map from output pixels to composite pixels.

        Output column 0 lands on the first image's midpoint, and rows
        are sheared so that the last image's midpoint ends at the same
        output row as the first one.
        """
        dx = comp.x_final - comp.x_init
        slope = (comp.y_final - comp.y_init) / dx if dx != 0 else 0.0
        return Transform([[1.0, 0.0, comp.x_init],
                          [slope, 1.0, comp.y_init - 0.5 * comp.source_height],
                          [0.0, 0.0, 1.0]])

    def blend_images(self, placements):
        """
        Create the final mosaic: blend, remove vertical drift and trim.

        The result is (composite width - image width) wide and one image
        high. When that width is not positive (a single image, or no net
        horizontal displacement) the uncropped composite is returned.

        Args:
            placements: Ordered list of ImagePosition

        Returns:
            Image
        """
        comp = self.composite(placements)
        out_width = comp.image.width - comp.source_width
        if out_width <= 0:
            logger.info("No horizontal extent to trim; returning the composite")
            return comp.image

        A = self.drift_transform(comp)
        logger.info(f"Drift correction {A!r}, output {out_width}x{comp.source_height}")
        return warp_global(comp.image, A, (out_width, comp.source_height),
                           InterpolationMode.LINEAR)
