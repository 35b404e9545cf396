"""
Exception types raised by the mosaic pipeline.
"""

import numpy as np


class MosaicError(Exception):
    """Base class for every error raised by this package."""


class MosaicIOError(MosaicError, IOError):
    """A file is missing, truncated or malformed."""


class ShapeMismatchError(MosaicError, ValueError):
    """Images (or fields) of incompatible size or band count were combined."""


class SingularMatrixError(MosaicError, np.linalg.LinAlgError):
    """A transform could not be inverted because a pivot was exactly zero."""


class InvalidArgument(MosaicError, ValueError):
    """An argument is out of range (band index, feature id, empty inlier set...)."""


class AlignmentFailure(MosaicError, RuntimeError):
    """
    RANSAC never found a hypothesis with at least one inlier.

    Raised instead of returning a transform so callers cannot mistake
    a failed alignment for a real (if poor) placement.
    """

    def __init__(self, message, num_matches=0):
        super().__init__(message)
        self.num_matches = num_matches
