"""
Robust pairwise alignment from feature correspondences using RANSAC
followed by a least-squares refinement over the inliers.
"""

import logging
from enum import Enum

import numpy as np
from scipy import linalg

from .errors import AlignmentFailure, InvalidArgument
from .transform import Transform

logger = logging.getLogger(__name__)

# Points closer than this are treated as coincident when sampling
DEGENERATE_EPS = 1e-6


class MotionModel(Enum):
    """Motion between two adjacent images."""

    TRANSLATE = 0   # images are translated only
    ROTATE = 1      # images are translated and rotated in the image plane

    @property
    def sample_size(self):
        """Number of matches needed to determine the motion exactly."""
        return 1 if self is MotionModel.TRANSLATE else 2

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        aliases = {'translate': cls.TRANSLATE, 'translation': cls.TRANSLATE,
                   'rotate': cls.ROTATE, 'rigid': cls.ROTATE}
        if isinstance(value, str) and value.strip().lower() in aliases:
            return aliases[value.strip().lower()]
        raise InvalidArgument(f"Unknown motion model: {value!r}")


class AlignmentResult:
    """Outcome of align_pair: the refined transform and its inliers."""

    def __init__(self, transform, inliers, iterations):
        self.transform = transform
        self.inliers = inliers
        self.iterations = iterations

    @property
    def num_inliers(self):
        return len(self.inliers)

    @property
    def translation(self):
        return self.transform.translation_part

    def __repr__(self):
        return f"AlignmentResult({self.transform!r}, num_inliers={self.num_inliers})"


class FeatureAligner:
    """
    Estimate the motion between two feature sets with RANSAC.

    Each iteration draws a minimal set of matches, computes the motion
    it implies exactly and counts the matches that agree with it. The
    hypothesis with the most inliers (the first one found on ties) is
    then refined by a least-squares fit over its inliers.
    """

    def __init__(self, n_ransac=200, ransac_thresh=4.0,
                 motion_model=MotionModel.TRANSLATE, focal_length=0.0,
                 seed=None, max_redraws=10):
        """
        Initialize the aligner.

        Args:
            n_ransac: Number of RANSAC iterations
            ransac_thresh: Maximum squared distance for a match to count
                as an inlier
            motion_model: MotionModel (or 'translate' / 'rotate')
            focal_length: Focal length of the warped images in pixels;
                recorded with the result, the motions estimated here are
                in warped pixel units
            seed: Seed for the random generator (None = nondeterministic)
            max_redraws: Attempts per iteration to draw a non-degenerate
                sample before the iteration is skipped
        """
        if n_ransac < 1:
            raise InvalidArgument(f"RANSAC needs at least one iteration, got {n_ransac}")
        if ransac_thresh < 0:
            raise InvalidArgument(f"RANSAC threshold must be >= 0, got {ransac_thresh}")
        self.n_ransac = int(n_ransac)
        self.ransac_thresh = float(ransac_thresh)
        self.motion_model = MotionModel.parse(motion_model)
        self.focal_length = focal_length
        self.max_redraws = max_redraws
        self.rng = np.random.default_rng(seed)

    def align_pair(self, f1, f2, matches):
        """
        Compute the transform mapping features of f1 onto f2.

        Args:
            f1, f2: FeatureSet of the first and second image
            matches: List of FeatureMatch (1-based ids into f1 / f2)

        Returns:
            AlignmentResult

        Raises:
            AlignmentFailure: no hypothesis had a single inlier
        """
        pts1, pts2 = self._matched_points(f1, f2, matches)
        n_matches = len(pts1)
        k = self.motion_model.sample_size

        if n_matches < k:
            raise AlignmentFailure(
                f"Need at least {k} matches for {self.motion_model.name}, got {n_matches}",
                num_matches=n_matches)

        best_M = None
        best_inliers = []

        for iteration in range(self.n_ransac):
            # Sampling
            M = None
            for _ in range(self.max_redraws):
                indices = self.rng.choice(n_matches, k, replace=False)
                M = self._estimate_exact(pts1[indices], pts2[indices])
                if M is not None:
                    break
            if M is None:
                continue

            # Scoring
            inliers = self._inliers(pts1, pts2, M)

            # Best selection (strictly greater: first found wins ties)
            if len(inliers) > len(best_inliers):
                best_M = M
                best_inliers = inliers
                logger.debug(f"Iteration {iteration}: {len(inliers)} inliers")

        if best_M is None or not best_inliers:
            raise AlignmentFailure(
                f"RANSAC found no inliers in {self.n_ransac} iterations "
                f"over {n_matches} matches", num_matches=n_matches)

        # Refinement
        refined = self._fit(pts1[best_inliers], pts2[best_inliers])
        logger.info(f"Aligned pair: {len(best_inliers)}/{n_matches} inliers, "
                    f"t=({refined[0, 2]:.2f}, {refined[1, 2]:.2f})")
        return AlignmentResult(refined, best_inliers, self.n_ransac)

    def count_inliers(self, f1, f2, matches, M):
        """
        Indices of the matches for which M applied to the f1 feature lands
        within the (squared) threshold of its f2 partner.
        """
        pts1, pts2 = self._matched_points(f1, f2, matches)
        return self._inliers(pts1, pts2, M)

    def least_squares_fit(self, f1, f2, matches, inliers):
        """
        Least-squares motion estimate over the given match indices.

        Raises:
            InvalidArgument: if `inliers` is empty
        """
        if len(inliers) == 0:
            raise InvalidArgument("Cannot fit a transform to an empty inlier set")
        pts1, pts2 = self._matched_points(f1, f2, matches)
        inliers = np.asarray(inliers, dtype=np.int64)
        return self._fit(pts1[inliers], pts2[inliers])

    def _matched_points(self, f1, f2, matches):
        """(N x 2) arrays of matched locations in f1 and f2."""
        pts1 = np.empty((len(matches), 2), dtype=np.float64)
        pts2 = np.empty((len(matches), 2), dtype=np.float64)
        for i, match in enumerate(matches):
            a = f1.feature(match.id1)
            b = f2.feature(match.id2)
            pts1[i] = (a.x, a.y)
            pts2[i] = (b.x, b.y)
        return pts1, pts2

    def _inliers(self, pts1, pts2, M):
        projected = M.apply_points(pts1)
        sq_dist = np.sum((projected - pts2) ** 2, axis=1)
        return [int(i) for i in np.flatnonzero(sq_dist <= self.ransac_thresh)]

    def _estimate_exact(self, src, dst):
        """Motion implied by a minimal sample, or None if it is degenerate."""
        if self.motion_model is MotionModel.TRANSLATE:
            t = dst[0] - src[0]
            return Transform.translation(t[0], t[1])

        v1 = src[1] - src[0]
        v2 = dst[1] - dst[0]
        if np.hypot(*v1) < DEGENERATE_EPS or np.hypot(*v2) < DEGENERATE_EPS:
            return None
        angle = np.arctan2(v2[1], v2[0]) - np.arctan2(v1[1], v1[0])
        R = Transform.rotation(np.degrees(angle))
        t = dst[0] - R.apply_points(src[:1])[0]
        return Transform.translation(t[0], t[1]) * R

    def _fit(self, src, dst):
        if self.motion_model is MotionModel.TRANSLATE:
            # The average translation vector over the inliers
            t = np.mean(dst - src, axis=0)
            return Transform.translation(t[0], t[1])
        return _fit_rigid(src, dst)


def _fit_rigid(src, dst):
    """
    Least-squares rotation + translation (2-D Procrustes).

    With one correspondence the rotation is undetermined and the pure
    translation is returned.
    """
    c_src = np.mean(src, axis=0)
    c_dst = np.mean(dst, axis=0)
    a = src - c_src
    b = dst - c_dst

    H = a.T @ b
    if len(src) < 2 or np.allclose(H, 0.0):
        t = c_dst - c_src
        return Transform.translation(t[0], t[1])

    U, _, Vt = linalg.svd(H)
    R = Vt.T @ U.T
    if linalg.det(R) < 0:
        Vt[-1] *= -1
        R = Vt.T @ U.T
    t = c_dst - R @ c_src

    m = np.eye(3)
    m[:2, :2] = R
    m[:2, 2] = t
    return Transform(m)


def placement_from_alignment(M):
    """
    Where the second image sits in the first image's frame.

    The aligner maps first-image feature locations to second-image
    locations; a second-image pixel therefore lands at M^-1 in the
    first image's frame.
    """
    return M.inverse()
