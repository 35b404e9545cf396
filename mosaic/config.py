"""
Default pipeline parameters and JSON overrides.
"""

import json

from .errors import InvalidArgument, MosaicIOError

DEFAULTS = {
    # Spherical warp
    'focal_length': 595.0,
    'k1': 0.0,
    'k2': 0.0,
    'projection': 'spherical',
    'tilt': 0.0,
    'interpolation': 'linear',
    'cubic_a': -0.5,
    # RANSAC alignment
    'n_ransac': 200,
    'ransac_thresh': 4.0,
    'motion_model': 'translate',
    'seed': None,
    # Blending
    'blend_width': 50.0,
}


def load_config(path=None, **overrides):
    """
    Build a parameter dict from DEFAULTS, a JSON file and keyword overrides.

    Args:
        path: Optional JSON file holding a subset of DEFAULTS' keys
        overrides: Values that win over the file (None values are ignored)

    Returns:
        dict with every key of DEFAULTS
    """
    cfg = dict(DEFAULTS)

    if path is not None:
        try:
            with open(path) as f:
                file_cfg = json.load(f)
        except OSError as e:
            raise MosaicIOError(f"Failed to read config {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise MosaicIOError(f"Invalid JSON in config {path}: {e}") from e
        if not isinstance(file_cfg, dict):
            raise MosaicIOError(f"Config {path} must hold a JSON object")
        _merge(cfg, file_cfg, source=path)

    _merge(cfg, {k: v for k, v in overrides.items() if v is not None}, source='arguments')
    return cfg


def _merge(cfg, values, source):
    unknown = sorted(set(values) - set(DEFAULTS))
    if unknown:
        raise InvalidArgument(f"Unknown config keys in {source}: {', '.join(unknown)}")
    cfg.update(values)
