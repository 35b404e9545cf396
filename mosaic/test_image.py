"""
Tests for the Image buffer.
"""

import numpy as np
import pytest

from mosaic.errors import InvalidArgument, ShapeMismatchError
from mosaic.image import BorderMode, Image, PixelKind, Shape, clamp_cast


def _ramp(width=5, height=4, n_bands=1):
    values = np.arange(width * height * n_bands).reshape(height, width, n_bands)
    return Image.from_array(values.astype(np.uint8))


def test_new_image_is_zeroed():
    image = Image(6, 3, 3, PixelKind.FLOAT)
    assert image.shape == Shape(6, 3, 3)
    assert image.pixels.shape == (3, 6, 3)
    assert image.pixels.dtype == np.float32
    assert not image.pixels.any()


def test_invalid_shape_raises():
    with pytest.raises(InvalidArgument):
        Image(4, 4, 0)
    with pytest.raises(InvalidArgument):
        Image(-1, 4, 1)


def test_from_array_infers_kind():
    assert Image.from_array(np.zeros((2, 2), np.uint8)).kind is PixelKind.BYTE
    assert Image.from_array(np.zeros((2, 2, 3), np.int64)).kind is PixelKind.INT
    assert Image.from_array(np.zeros((2, 2), np.float64)).kind is PixelKind.FLOAT
    assert Image.from_array(np.zeros((2, 2))).n_bands == 1


def test_from_array_clamps_when_converting():
    image = Image.from_array(np.array([[-5.0, 100.4, 300.0]]), kind=PixelKind.BYTE)
    assert image.pixels[0, :, 0].tolist() == [0, 100, 255]


def test_view_shares_storage_and_clone_does_not():
    image = _ramp()
    view = image.view()
    copy = image.clone()
    assert view.shares_storage(image)
    assert not copy.shares_storage(image)

    view.set_pixel(0, 0, 0, 99)
    assert image.pixel(0, 0) == 99
    assert copy.pixel(0, 0) == 0


def test_sub_image_writes_through():
    image = Image(8, 8)
    sub = image.sub_image(2, 3, 4, 2)
    assert sub.shape == Shape(4, 2, 1)
    sub.pixels[...] = 7
    assert image.pixels[3:5, 2:6].min() == 7
    assert image.pixels.sum() == 7 * 8


def test_sub_image_is_clipped():
    image = Image(8, 8)
    assert image.sub_image(6, -2, 10, 4).shape == Shape(2, 2, 1)
    with pytest.raises(InvalidArgument):
        image.sub_image(10, 10, 2, 2)


def test_pixel_access_is_bounds_checked():
    image = _ramp()
    assert image.pixel(4, 3) == 19
    with pytest.raises(InvalidArgument):
        image.pixel(5, 0)
    with pytest.raises(InvalidArgument):
        image.pixel(0, 0, band=1)
    with pytest.raises(InvalidArgument):
        image.set_pixel(-1, 0, 0, 1)


def test_set_pixel_clamps():
    image = Image(2, 2)
    image.set_pixel(1, 1, 0, 400)
    assert image.pixel(1, 1) == 255


@pytest.mark.parametrize('mode, x, expected', [
    (BorderMode.ZERO, -1, 0),
    (BorderMode.REPLICATE, -3, 0),
    (BorderMode.REPLICATE, 7, 4),
    (BorderMode.REFLECT, -1, 1),
    (BorderMode.REFLECT, 5, 3),
    (BorderMode.CYCLIC, -1, 4),
    (BorderMode.CYCLIC, 6, 1),
])
def test_border_pixel(mode, x, expected):
    image = Image.from_array(np.arange(5, dtype=np.uint8)[np.newaxis, :])
    image.border_mode = mode
    assert image.border_pixel(x, 0) == expected


def test_padded_uses_border_mode():
    image = Image.from_array(np.arange(3, dtype=np.uint8)[np.newaxis, :])
    image.border_mode = BorderMode.REPLICATE
    assert image.padded(1)[1, :, 0].tolist() == [0, 0, 1, 2, 2]


def test_check_same_shape():
    Image(3, 3).check_same_shape(Image(3, 3))
    with pytest.raises(ShapeMismatchError):
        Image(3, 3).check_same_shape(Image(3, 3, 3))


def test_reallocate():
    image = Image(2, 2)
    pixels = image.pixels
    image.reallocate(Shape(2, 2, 1))
    assert image.pixels is pixels
    image.reallocate(Shape(4, 3, 2), PixelKind.FLOAT)
    assert image.shape == Shape(4, 3, 2)
    assert image.kind is PixelKind.FLOAT


def test_converted_scales_and_clamps():
    image = Image.from_array(np.array([[0, 100, 200]], dtype=np.uint8))
    as_float = image.converted(PixelKind.FLOAT, scale=1 / 255.0)
    assert as_float.kind is PixelKind.FLOAT
    assert np.allclose(as_float.pixels[0, :, 0], [0, 100 / 255.0, 200 / 255.0])

    doubled = image.converted(PixelKind.BYTE, scale=2.0)
    assert doubled.pixels[0, :, 0].tolist() == [0, 200, 255]


def test_to_rgba():
    gray = Image.from_array(np.full((2, 3), 40, dtype=np.uint8))
    rgba = gray.to_rgba()
    assert rgba.n_bands == 4
    assert (rgba.pixels[..., :3] == 40).all()
    assert (rgba.pixels[..., 3] == 255).all()

    rgb = Image(2, 2, 3, PixelKind.FLOAT).to_rgba()
    assert (rgb.pixels[..., 3] == 1.0).all()

    with pytest.raises(ShapeMismatchError):
        Image(2, 2, 2).to_rgba()


def test_to_gray():
    rgb = Image.from_array(np.full((1, 1, 3), 100, dtype=np.uint8))
    assert rgb.to_gray().pixel(0, 0) == 100


def test_clamp_cast_rounds_integer_kinds():
    assert clamp_cast([1.4, 1.6, -7.0], PixelKind.BYTE).tolist() == [1, 2, 0]
    assert clamp_cast([1.4], PixelKind.FLOAT).dtype == np.float32
