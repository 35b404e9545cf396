"""
Image buffer used throughout the pipeline.

An Image is a thin wrapper around a NumPy array of shape
(height, width, n_bands). Storage sharing is always explicit:
view() and sub_image() return images backed by the same array,
clone() returns an image with its own storage.
"""

from collections import namedtuple
from enum import Enum

import numpy as np

from .errors import InvalidArgument, ShapeMismatchError


class PixelKind(Enum):
    """Supported sample types, each with its clamp range."""

    BYTE = 'uint8'
    INT = 'int32'
    FLOAT = 'float32'

    @property
    def dtype(self):
        return np.dtype(self.value)

    @property
    def min_val(self):
        if self is PixelKind.FLOAT:
            return float(-np.finfo(np.float32).max)
        return int(np.iinfo(self.dtype).min)

    @property
    def max_val(self):
        if self is PixelKind.FLOAT:
            return float(np.finfo(np.float32).max)
        return int(np.iinfo(self.dtype).max)

    @property
    def is_integer(self):
        return self is not PixelKind.FLOAT

    @classmethod
    def from_dtype(cls, dtype):
        dtype = np.dtype(dtype)
        if dtype == np.uint8 or dtype == np.bool_:
            return cls.BYTE
        if np.issubdtype(dtype, np.integer):
            return cls.INT
        if np.issubdtype(dtype, np.floating):
            return cls.FLOAT
        raise InvalidArgument(f"Unsupported pixel dtype: {dtype}")


class BorderMode(Enum):
    """How neighbourhood operations see pixels outside the image."""

    ZERO = 0
    REPLICATE = 1
    REFLECT = 2
    CYCLIC = 3


# np.pad mode for each border policy
_PAD_MODES = {
    BorderMode.ZERO: 'constant',
    BorderMode.REPLICATE: 'edge',
    BorderMode.REFLECT: 'reflect',
    BorderMode.CYCLIC: 'wrap',
}


class Shape(namedtuple('Shape', ['width', 'height', 'n_bands'])):
    """Width, height and band count of an image."""

    __slots__ = ()

    def in_bounds(self, x, y):
        return 0 <= x < self.width and 0 <= y < self.height

    @property
    def array_shape(self):
        return (self.height, self.width, self.n_bands)


class Image:
    """
    Rectangular grid of pixels with n_bands samples of one PixelKind.

    Attributes:
        pixels: Backing array (height x width x n_bands)
        kind: PixelKind of the samples
        border_mode: BorderMode used by border_pixel() and padded()
        origin: (x, y) offset of the logical centre, used by kernels
    """

    def __init__(self, width=0, height=0, n_bands=1, kind=PixelKind.BYTE,
                 border_mode=BorderMode.ZERO, origin=(0, 0)):
        """
        Allocate a zero-filled image.

        Args:
            width: Number of columns
            height: Number of rows
            n_bands: Samples per pixel
            kind: PixelKind of the samples
            border_mode: Border extension policy
            origin: Kernel origin offset (x, y)
        """
        if width < 0 or height < 0 or n_bands < 1:
            raise InvalidArgument(
                f"Invalid image shape: {width}x{height}x{n_bands}")
        self.kind = kind
        self.border_mode = border_mode
        self.origin = tuple(origin)
        self.pixels = np.zeros((height, width, n_bands), dtype=kind.dtype)

    @classmethod
    def from_array(cls, array, kind=None, copy=True):
        """
        Wrap a NumPy array as an Image.

        Args:
            array: (H x W) or (H x W x C) array
            kind: PixelKind to store; inferred from the dtype when None
            copy: When False and no conversion is needed, the image
                shares storage with `array`

        Returns:
            Image
        """
        array = np.asarray(array)
        if array.ndim == 2:
            array = array[:, :, np.newaxis]
        if array.ndim != 3:
            raise ShapeMismatchError(
                f"Expected a 2-D or 3-D array, got shape {array.shape}")

        if kind is None:
            kind = PixelKind.from_dtype(array.dtype)
        if array.dtype != kind.dtype:
            array = clamp_cast(array, kind)
        elif copy:
            array = array.copy()

        image = cls.__new__(cls)
        image.kind = kind
        image.border_mode = BorderMode.ZERO
        image.origin = (0, 0)
        image.pixels = array
        return image

    # Shape

    @property
    def width(self):
        return self.pixels.shape[1]

    @property
    def height(self):
        return self.pixels.shape[0]

    @property
    def n_bands(self):
        return self.pixels.shape[2]

    @property
    def shape(self):
        return Shape(self.width, self.height, self.n_bands)

    @property
    def min_val(self):
        return self.kind.min_val

    @property
    def max_val(self):
        return self.kind.max_val

    def in_bounds(self, x, y):
        return self.shape.in_bounds(x, y)

    def check_same_shape(self, other):
        """Raise ShapeMismatchError unless `other` has the same shape."""
        if self.shape != other.shape:
            raise ShapeMismatchError(
                f"Image shapes differ: {tuple(self.shape)} vs {tuple(other.shape)}")

    # Pixel access

    def _check_band(self, band):
        if not 0 <= band < self.n_bands:
            raise InvalidArgument(
                f"Band {band} out of range for {self.n_bands}-band image")

    def pixel(self, x, y, band=0):
        """Read one sample; raises InvalidArgument outside the image."""
        self._check_band(band)
        if not self.in_bounds(x, y):
            raise InvalidArgument(
                f"Pixel ({x}, {y}) outside {self.width}x{self.height} image")
        return self.pixels[y, x, band]

    def set_pixel(self, x, y, band, value):
        """Write one sample (clamped to the pixel kind)."""
        self._check_band(band)
        if not self.in_bounds(x, y):
            raise InvalidArgument(
                f"Pixel ({x}, {y}) outside {self.width}x{self.height} image")
        self.pixels[y, x, band] = np.clip(value, self.min_val, self.max_val)

    def border_pixel(self, x, y, band=0):
        """
        Read one sample, extending the image according to border_mode.

        Coordinates may lie anywhere; ZERO returns 0 outside the image.
        """
        self._check_band(band)
        w, h = self.width, self.height
        if self.in_bounds(x, y):
            return self.pixels[y, x, band]
        if self.border_mode is BorderMode.ZERO or w == 0 or h == 0:
            return self.pixels.dtype.type(0)
        if self.border_mode is BorderMode.REPLICATE:
            x = min(max(x, 0), w - 1)
            y = min(max(y, 0), h - 1)
        elif self.border_mode is BorderMode.CYCLIC:
            x %= w
            y %= h
        else:
            x = _reflect_index(x, w)
            y = _reflect_index(y, h)
        return self.pixels[y, x, band]

    def padded(self, border):
        """Return a copy of the pixels extended by `border` on every side."""
        pad = ((border, border), (border, border), (0, 0))
        return np.pad(self.pixels, pad, mode=_PAD_MODES[self.border_mode])

    # Storage

    def _wrap(self, array):
        image = Image.__new__(Image)
        image.kind = self.kind
        image.border_mode = self.border_mode
        image.origin = self.origin
        image.pixels = array
        return image

    def view(self):
        """Another Image sharing this image's storage."""
        return self._wrap(self.pixels)

    def sub_image(self, x, y, width, height):
        """
        View of a rectangular region; writes go through to this image.

        The region is clipped to the image bounds.
        """
        x0, y0 = max(x, 0), max(y, 0)
        x1, y1 = min(x + width, self.width), min(y + height, self.height)
        if x1 <= x0 or y1 <= y0:
            raise InvalidArgument(
                f"Region ({x}, {y}, {width}, {height}) does not intersect the image")
        return self._wrap(self.pixels[y0:y1, x0:x1])

    def clone(self):
        """Deep copy with independent storage."""
        return self._wrap(self.pixels.copy())

    def shares_storage(self, other):
        return np.shares_memory(self.pixels, other.pixels)

    def clear(self):
        self.pixels[...] = 0

    def reallocate(self, shape, kind=None):
        """Replace the storage with a zeroed buffer of `shape` (no-op if unchanged)."""
        kind = kind or self.kind
        if self.shape == shape and self.kind is kind:
            return
        self.kind = kind
        self.pixels = np.zeros(shape.array_shape, dtype=kind.dtype)

    # Conversion

    def converted(self, kind, scale=1.0, offset=0.0):
        """Convert to another kind as value * scale + offset, clamped."""
        values = self.pixels.astype(np.float64) * scale + offset
        image = self._wrap(clamp_cast(values, kind))
        image.kind = kind
        return image

    def to_rgba(self):
        """
        Four-band copy with an opaque alpha band.

        Gray images are replicated into the colour bands; RGBA images
        are returned as a clone.
        """
        if self.n_bands == 4:
            return self.clone()
        if self.n_bands == 1:
            colour = np.repeat(self.pixels, 3, axis=2)
        elif self.n_bands == 3:
            colour = self.pixels
        else:
            raise ShapeMismatchError(
                f"Cannot convert a {self.n_bands}-band image to RGBA")
        alpha = np.full(colour.shape[:2] + (1,), _opaque(self.kind), dtype=self.pixels.dtype)
        return self._wrap(np.concatenate([colour, alpha], axis=2))

    def to_gray(self):
        """Single-band luminance copy of an RGB or RGBA image."""
        if self.n_bands == 1:
            return self.clone()
        if self.n_bands not in (3, 4):
            raise ShapeMismatchError(
                f"Cannot convert a {self.n_bands}-band image to gray")
        gray = np.dot(self.pixels[..., :3].astype(np.float64), [0.299, 0.587, 0.114])
        return self._wrap(clamp_cast(gray[:, :, np.newaxis], self.kind))

    def __repr__(self):
        return (f"Image({self.width}x{self.height}x{self.n_bands}, "
                f"kind={self.kind.name})")


def _opaque(kind):
    return 1.0 if kind is PixelKind.FLOAT else 255


def _reflect_index(i, n):
    # Mirror about the edge pixels: -1 -> 1, n -> n - 2
    if n == 1:
        return 0
    period = 2 * (n - 1)
    i = abs(i) % period
    return period - i if i >= n else i


def clamp_cast(values, kind):
    """Clip to the kind's range and cast, rounding for integer kinds."""
    values = np.asarray(values)
    if kind.is_integer:
        values = np.rint(values.astype(np.float64))
    return np.clip(values, kind.min_val, kind.max_val).astype(kind.dtype)
