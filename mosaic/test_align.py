"""
Tests for RANSAC alignment.
"""

import numpy as np
import pytest

from mosaic.align import FeatureAligner, MotionModel, placement_from_alignment
from mosaic.errors import AlignmentFailure, InvalidArgument
from mosaic.features import Feature, FeatureMatch, FeatureSet
from mosaic.transform import Transform


def _feature_sets(pts1, pts2):
    f1 = FeatureSet(Feature(i + 1, int(x), int(y)) for i, (x, y) in enumerate(pts1))
    f2 = FeatureSet(Feature(i + 1, int(x), int(y)) for i, (x, y) in enumerate(pts2))
    matches = [FeatureMatch(i + 1, i + 1) for i in range(len(pts1))]
    return f1, f2, matches


def _with_outliers(n=100, inlier_ratio=0.7, motion=None, seed=1):
    """Matched point arrays where the first inlier_ratio of them follow `motion`."""
    rng = np.random.default_rng(seed)
    pts1 = rng.integers(0, 400, size=(n, 2)).astype(np.float64)
    n_in = int(n * inlier_ratio)
    pts2 = np.empty_like(pts1)
    pts2[:n_in] = np.rint(motion.apply_points(pts1[:n_in]))
    pts2[n_in:] = rng.integers(-500, 900, size=(n - n_in, 2))
    return pts1, pts2, n_in


def test_translation_with_outliers():
    pts1, pts2, n_in = _with_outliers(motion=Transform.translation(12, -5))
    f1, f2, matches = _feature_sets(pts1, pts2)

    aligner = FeatureAligner(n_ransac=200, ransac_thresh=4.0, seed=0)
    result = aligner.align_pair(f1, f2, matches)

    dx, dy = result.translation
    assert (dx - 12) ** 2 + (dy + 5) ** 2 <= 4.0
    assert result.num_inliers >= 0.6 * len(matches)
    assert set(range(n_in)) <= set(result.inliers)


def test_alignment_is_reproducible_with_seed():
    pts1, pts2, _ = _with_outliers(inlier_ratio=0.4, motion=Transform.translation(3, 9))
    f1, f2, matches = _feature_sets(pts1, pts2)
    a = FeatureAligner(n_ransac=50, seed=42).align_pair(f1, f2, matches)
    b = FeatureAligner(n_ransac=50, seed=42).align_pair(f1, f2, matches)
    assert a.transform == b.transform
    assert a.inliers == b.inliers


def test_rotation_model_recovers_rigid_motion():
    motion = Transform.translation(20, 8) * Transform.rotation(3.0)
    pts1, pts2, n_in = _with_outliers(motion=motion, seed=5)
    f1, f2, matches = _feature_sets(pts1, pts2)

    aligner = FeatureAligner(n_ransac=300, ransac_thresh=4.0,
                             motion_model='rotate', seed=3)
    result = aligner.align_pair(f1, f2, matches)

    m = result.transform.matrix
    angle = np.degrees(np.arctan2(m[1, 0], m[0, 0]))
    assert angle == pytest.approx(3.0, abs=0.3)
    assert np.allclose(m[2], [0, 0, 1])
    assert result.num_inliers >= 0.6 * len(matches)
    residual = result.transform.apply_points(pts1[:n_in]) - pts2[:n_in]
    assert np.abs(residual).max() < 2.0


def test_placement_is_inverse_of_motion():
    placement = placement_from_alignment(Transform.translation(12, -5))
    assert placement.translation_part == (-12.0, 5.0)


def test_too_few_matches_raises():
    f1, f2, matches = _feature_sets([[0, 0]], [[5, 5]])
    with pytest.raises(AlignmentFailure) as info:
        FeatureAligner(motion_model=MotionModel.ROTATE, seed=0).align_pair(f1, f2, matches)
    assert info.value.num_matches == 1

    with pytest.raises(AlignmentFailure):
        FeatureAligner(seed=0).align_pair(f1, f2, [])


def test_degenerate_samples_raise_alignment_failure():
    # Both matches start at the same point, so no rotation is defined
    f1, f2, matches = _feature_sets([[10, 10], [10, 10]], [[0, 0], [5, 5]])
    aligner = FeatureAligner(n_ransac=5, motion_model='rotate', seed=0)
    with pytest.raises(AlignmentFailure):
        aligner.align_pair(f1, f2, matches)


def test_count_inliers_uses_squared_threshold():
    f1, f2, matches = _feature_sets([[0, 0], [0, 0], [0, 0]],
                                    [[2, 0], [3, 0], [1, 1]])
    aligner = FeatureAligner(ransac_thresh=4.0)
    assert aligner.count_inliers(f1, f2, matches, Transform()) == [0, 2]


def test_least_squares_fit():
    f1, f2, matches = _feature_sets([[0, 0], [10, 0], [0, 10]],
                                    [[5, 1], [15, 3], [5, 11]])
    aligner = FeatureAligner()
    M = aligner.least_squares_fit(f1, f2, matches, [0, 1, 2])
    assert M.allclose(Transform.translation(5, 5 / 3.0))
    with pytest.raises(InvalidArgument):
        aligner.least_squares_fit(f1, f2, matches, [])


def test_invalid_parameters():
    with pytest.raises(InvalidArgument):
        FeatureAligner(n_ransac=0)
    with pytest.raises(InvalidArgument):
        FeatureAligner(motion_model='affine')


def test_unknown_feature_id_raises():
    f1, f2, _ = _feature_sets([[0, 0]], [[1, 1]])
    with pytest.raises(InvalidArgument):
        FeatureAligner(seed=0).align_pair(f1, f2, [FeatureMatch(1, 7)])
