"""
Feature points and feature correspondences loaded from text files.

Feature detection and matching happen elsewhere; this module only
reads and writes their results.
"""

import logging

import numpy as np

from .errors import InvalidArgument, MosaicIOError

logger = logging.getLogger(__name__)

SIFT_FEATURE_TYPE = 9
SIFT_DESCRIPTOR_LENGTH = 128


class Feature:
    """A feature point: id, integer location, orientation and descriptor."""

    def __init__(self, id, x, y, angle=0.0, data=None, type=1, selected=False):
        self.type = type
        self.id = id
        self.x = x
        self.y = y
        self.angle = angle
        self.data = np.asarray(data if data is not None else [], dtype=np.float64)
        self.selected = selected

    @property
    def pt(self):
        return (self.x, self.y)

    def __repr__(self):
        return f"Feature(id={self.id}, pt=({self.x}, {self.y}), angle={self.angle:.2f})"


class FeatureMatch:
    """Correspondence between feature id1 (first set) and id2 (second set)."""

    def __init__(self, id1, id2, score=0.0):
        self.id1 = id1
        self.id2 = id2
        self.score = score

    def __repr__(self):
        return f"FeatureMatch({self.id1}, {self.id2}, score={self.score:g})"


class _Tokens:
    """Whitespace-separated tokens of a text file, read in order."""

    def __init__(self, path):
        self.path = path
        try:
            with open(path, 'r') as fh:
                self._tokens = fh.read().split()
        except OSError as e:
            raise MosaicIOError(f"Failed to read {path}: {e}") from e
        self._pos = 0

    def next(self, convert, what):
        if self._pos >= len(self._tokens):
            raise MosaicIOError(f"{self.path}: truncated file (expected {what})")
        token = self._tokens[self._pos]
        self._pos += 1
        try:
            return convert(token)
        except ValueError:
            raise MosaicIOError(
                f"{self.path}: malformed {what} {token!r} at token {self._pos}") from None


class FeatureSet(list):
    """
    The features of one image. Feature ids are 1-based, so the feature
    with id k is normally self[k - 1].
    """

    def load(self, path):
        """
        Load the native feature format: a count, then for each feature
        `type id x y angle n d1 ... dn`.
        """
        tokens = _Tokens(path)
        self.clear()
        n = tokens.next(int, 'feature count')
        for _ in range(n):
            ftype = tokens.next(int, 'feature type')
            fid = tokens.next(int, 'feature id')
            x = tokens.next(int, 'x coordinate')
            y = tokens.next(int, 'y coordinate')
            angle = tokens.next(float, 'angle')
            length = tokens.next(int, 'descriptor length')
            data = [tokens.next(float, 'descriptor value') for _ in range(length)]
            self.append(Feature(fid, x, y, angle, data, type=ftype))
        logger.debug(f"Loaded {len(self)} features from {path}")
        return self

    def load_sift(self, path):
        """
        Load Lowe's SIFT keypoint text format: `n 128`, then for each
        keypoint `row col scale orientation` and 128 descriptor values.
        Ids are assigned 1..n in file order.
        """
        tokens = _Tokens(path)
        self.clear()
        n = tokens.next(int, 'feature count')
        length = tokens.next(int, 'descriptor length')
        if length != SIFT_DESCRIPTOR_LENGTH:
            raise MosaicIOError(
                f"{path}: SIFT descriptors must have {SIFT_DESCRIPTOR_LENGTH} values, got {length}")
        for fid in range(1, n + 1):
            row = tokens.next(float, 'row')
            col = tokens.next(float, 'column')
            tokens.next(float, 'scale')
            angle = tokens.next(float, 'orientation')
            data = [tokens.next(float, 'descriptor value') for _ in range(length)]
            self.append(Feature(fid, int(col + 0.5), int(row + 0.5), angle, data,
                                type=SIFT_FEATURE_TYPE))
        logger.debug(f"Loaded {len(self)} SIFT features from {path}")
        return self

    @classmethod
    def from_file(cls, path, sift=False):
        features = cls()
        return features.load_sift(path) if sift else features.load(path)

    def save(self, path):
        """Write the native feature format."""
        try:
            with open(path, 'w') as fh:
                fh.write(f"{len(self)}\n")
                for feat in self:
                    fh.write(f"{feat.type}\n{feat.id}\n{feat.x} {feat.y}\n{float(feat.angle)!r}\n")
                    fh.write(f"{len(feat.data)}\n")
                    for value in feat.data:
                        fh.write(f"{float(value)!r}\n")
        except OSError as e:
            raise MosaicIOError(f"Failed to write {path}: {e}") from e

    def feature(self, fid):
        """Feature with 1-based id `fid`."""
        if not 1 <= fid <= len(self):
            raise InvalidArgument(f"Feature id {fid} out of range 1..{len(self)}")
        return self[fid - 1]

    def positions(self):
        """(N x 2) array of feature locations in file order."""
        return np.array([[f.x, f.y] for f in self], dtype=np.float64).reshape(-1, 2)

    # Interactive selection

    def select_point(self, x, y):
        """Toggle every feature within 3 pixels of (x, y)."""
        for feat in self:
            if abs(feat.x - x) <= 3 and abs(feat.y - y) <= 3:
                feat.selected = not feat.selected

    def select_box(self, x_min, x_max, y_min, y_max):
        """Toggle every feature inside the box (inclusive)."""
        for feat in self:
            if x_min <= feat.x <= x_max and y_min <= feat.y <= y_max:
                feat.selected = not feat.selected

    def select_all(self):
        for feat in self:
            feat.selected = True

    def deselect_all(self):
        for feat in self:
            feat.selected = False

    def selected_features(self):
        """New FeatureSet holding only the selected features."""
        return FeatureSet(f for f in self if f.selected)


def read_feature_matches(path):
    """
    Read a correspondence file: a count, then `id1 id2 score` per match.

    Returns:
        List of FeatureMatch
    """
    tokens = _Tokens(path)
    n = tokens.next(int, 'match count')
    matches = []
    for _ in range(n):
        id1 = tokens.next(int, 'id1')
        id2 = tokens.next(int, 'id2')
        score = tokens.next(float, 'score')
        matches.append(FeatureMatch(id1, id2, score))
    logger.debug(f"Loaded {len(matches)} matches from {path}")
    return matches


def write_feature_matches(path, matches):
    try:
        with open(path, 'w') as fh:
            fh.write(f"{len(matches)}\n")
            for m in matches:
                fh.write(f"{m.id1} {m.id2} {float(m.score)!r}\n")
    except OSError as e:
        raise MosaicIOError(f"Failed to write {path}: {e}") from e
