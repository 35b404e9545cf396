"""
Tests for inverse-warp resampling.
"""

import numpy as np
import pytest

from mosaic.errors import InvalidArgument, ShapeMismatchError
from mosaic.image import Image, PixelKind
from mosaic.transform import Transform
from mosaic.warp import (
    CUBIC_LUT_SIZE,
    InterpolationMode,
    coordinate_field,
    cubic_lut,
    sample,
    warp_global,
    warp_local,
)


@pytest.fixture
def noise():
    rng = np.random.default_rng(7)
    return Image.from_array(rng.integers(0, 256, size=(12, 16, 3), dtype=np.uint8))


def _identity_field(width, height):
    return coordinate_field(Transform.identity(), width, height)


def test_interpolation_extents():
    assert InterpolationMode.NEAREST.extents == (0, 0)
    assert InterpolationMode.LINEAR.extents == (0, 1)
    assert InterpolationMode.CUBIC.extents == (1, 2)


def test_interpolation_parse():
    assert InterpolationMode.parse('bilinear') is InterpolationMode.LINEAR
    assert InterpolationMode.parse('Cubic') is InterpolationMode.CUBIC
    assert InterpolationMode.parse(0) is InterpolationMode.NEAREST
    with pytest.raises(InvalidArgument):
        InterpolationMode.parse('lanczos')
    with pytest.raises(InvalidArgument):
        InterpolationMode.parse(2)


def test_identity_linear_warp_copies_except_last_row_and_column(noise):
    out = warp_local(noise, _identity_field(noise.width, noise.height))
    assert out.shape == noise.shape
    assert out.kind is PixelKind.BYTE
    assert np.array_equal(out.pixels[:-1, :-1], noise.pixels[:-1, :-1])
    assert not out.pixels[-1].any()
    assert not out.pixels[:, -1].any()


def test_identity_nearest_warp_is_exact(noise):
    out = warp_local(noise, _identity_field(noise.width, noise.height),
                     interp=InterpolationMode.NEAREST)
    assert np.array_equal(out.pixels, noise.pixels)


def test_nearest_uses_floor():
    src = Image.from_array(np.array([[10, 20, 30]], dtype=np.uint8))
    out = sample(src, np.array([0.9, 1.5, 2.99]), np.zeros(3),
                 InterpolationMode.NEAREST)
    assert out[:, 0].tolist() == [10, 20, 30]


def test_cubic_lut_rows_sum_to_one():
    lut = cubic_lut()
    assert lut.shape == (CUBIC_LUT_SIZE, 4)
    assert np.allclose(lut.sum(axis=1), 1.0)
    assert np.allclose(lut[0], [0, 1, 0, 0])
    assert cubic_lut() is lut
    assert not lut.flags.writeable


def test_identity_cubic_warp_is_exact_in_interior(noise):
    out = warp_local(noise, _identity_field(noise.width, noise.height),
                     interp=InterpolationMode.CUBIC)
    assert np.array_equal(out.pixels[1:-2, 1:-2], noise.pixels[1:-2, 1:-2])
    assert not out.pixels[0].any()
    assert not out.pixels[:, -2:].any()


def test_linear_interpolates_midpoint():
    src = Image.from_array(np.array([[0.0, 10.0, 20.0],
                                     [10.0, 20.0, 30.0]], dtype=np.float32))
    out = sample(src, np.array([0.5, 1.25]), np.array([0.5, 0.0]))
    assert np.allclose(out[:, 0], [10.0, 12.5])


def test_footprint_outside_zeroes_every_band(noise):
    out = sample(noise, np.array([-0.5, 3.0, np.nan]), np.array([2.0, 100.0, 2.0]))
    assert not out.any()


def test_relative_zero_flow_is_identity(noise):
    flow = Image(noise.width, noise.height, 2, PixelKind.FLOAT)
    out = warp_local(noise, flow, relative=True, interp=InterpolationMode.NEAREST)
    assert np.array_equal(out.pixels, noise.pixels)


def test_relative_flow_shifts():
    src = Image.from_array(np.arange(20, dtype=np.uint8).reshape(4, 5))
    flow = Image(5, 4, 2, PixelKind.FLOAT)
    flow.pixels[..., 0] = 1.0
    out = warp_local(src, flow, relative=True, interp=InterpolationMode.NEAREST)
    assert np.array_equal(out.pixels[:, :-1], src.pixels[:, 1:])
    assert not out.pixels[:, -1].any()


def test_warp_local_needs_two_band_field(noise):
    with pytest.raises(ShapeMismatchError):
        warp_local(noise, Image(4, 4, 3, PixelKind.FLOAT))


def test_warp_global_translation(noise):
    out = warp_global(noise, Transform.translation(3, 2), shape=(8, 6))
    assert (out.width, out.height) == (8, 6)
    assert np.array_equal(out.pixels, noise.pixels[2:8, 3:11])


def test_warp_global_defaults_to_source_size(noise):
    out = warp_global(noise, Transform.translation(-1, 0),
                      interp=InterpolationMode.NEAREST)
    assert out.shape == noise.shape
    assert not out.pixels[:, 0].any()
    assert np.array_equal(out.pixels[:, 1:], noise.pixels[:, :-1])


def test_warp_global_projective_divides_per_pixel():
    src = Image.from_array(np.arange(64, dtype=np.float32).reshape(8, 8))
    # Scales by 1/2 through the homogeneous coordinate
    M = Transform([[1, 0, 0], [0, 1, 0], [0, 0, 2]])
    out = warp_global(src, M, shape=(4, 4), interp=InterpolationMode.NEAREST)
    assert out.pixel(2, 2) == src.pixel(1, 1)
    assert out.pixel(3, 2) == src.pixel(1, 1)


def test_warp_round_trip_recovers_interior(noise):
    M = Transform.translation(2.0, 1.0)
    there = warp_global(noise, M, shape=(noise.width + 4, noise.height + 4),
                        interp=InterpolationMode.NEAREST)
    back = warp_global(there, M.inverse(), shape=(noise.width, noise.height),
                       interp=InterpolationMode.NEAREST)
    assert np.array_equal(back.pixels[2:-2, 2:-2], noise.pixels[2:-2, 2:-2])


def test_invalid_destination_size(noise):
    with pytest.raises(InvalidArgument):
        warp_global(noise, Transform(), shape=(0, 4))


def test_sub_pixel_field_and_its_inverse_reconstruct_smooth_image():
    grid_y, grid_x = np.mgrid[0:20, 0:24].astype(np.float32)
    src = Image.from_array(2.0 * grid_x + 3.0 * grid_y + 10.0)
    M = Transform.translation(0.5, 0.25)

    there = warp_local(src, coordinate_field(M, src.width, src.height))
    back = warp_local(there, coordinate_field(M.inverse(), src.width, src.height))
    assert np.allclose(back.pixels[2:-2, 2:-2], src.pixels[2:-2, 2:-2], atol=1e-4)
    # Halfway samples of a linear ramp are exact under bilinear interpolation
    assert np.allclose(there.pixels[3, 4, 0], 2.0 * 4.5 + 3.0 * 3.25 + 10.0)


def test_cubic_lut_depends_on_a():
    sharp = cubic_lut(-0.75)
    default = cubic_lut(-0.5)
    assert sharp is not default
    assert not np.allclose(sharp, default)
    assert np.allclose(sharp.sum(axis=1), 1.0)
    assert cubic_lut(-0.75) is sharp


def test_cubic_a_changes_resampled_values():
    rng = np.random.default_rng(11)
    src = Image.from_array(rng.random((10, 10)).astype(np.float32))
    field = coordinate_field(Transform.translation(0.5, 0.5), 10, 10)
    a = warp_local(src, field, interp=InterpolationMode.CUBIC, cubic_a=-0.5)
    b = warp_local(src, field, interp=InterpolationMode.CUBIC, cubic_a=-1.0)
    assert not np.allclose(a.pixels[2:-3, 2:-3], b.pixels[2:-3, 2:-3])
