"""Continuous jet ramp (blue → cyan → green → yellow → red) for density rendering."""

import numpy as np

ALPHA = 220


def _channel(t, peak: float):
    return np.clip(1.5 - np.abs(4.0 * t - peak), 0.0, 1.0)


def jet_color(t: float) -> tuple[int, int, int, int]:
    """Map t in [0, 1] (clamped) to an RGBA tuple with constant alpha."""
    t = min(1.0, max(0.0, float(t)))
    r, g, b = (int(np.floor(_channel(t, k) * 255 + 0.5)) for k in (3.0, 2.0, 1.0))
    return r, g, b, ALPHA


def jet_colors(t: np.ndarray) -> np.ndarray:
    """Vectorized jet_color. NaN entries become fully transparent.

    Returns:
        uint8 array of shape ``t.shape + (4,)``.
    """
    t = np.asarray(t, dtype=np.float64)
    valid = np.isfinite(t)
    tc = np.clip(np.where(valid, t, 0.0), 0.0, 1.0)
    out = np.zeros(t.shape + (4,), dtype=np.uint8)
    for i, peak in enumerate((3.0, 2.0, 1.0)):
        out[..., i] = np.floor(_channel(tc, peak) * 255 + 0.5).astype(np.uint8)
    out[..., 3] = np.where(valid, ALPHA, 0)
    out[~valid, :3] = 0
    return out


def jet_hex_stops(n: int = 5) -> list[str]:
    """Evenly spaced hex colors along the ramp, for legends."""
    stops = np.linspace(0.0, 1.0, max(2, n))
    return ["#{:02x}{:02x}{:02x}".format(*jet_color(t)[:3]) for t in stops]
