"""Fixed per-metal corrosivity classification (C1…CX).

Thresholds are absolute rates in g/m²/yr, not normalized to the data. Zinc,
copper and aluminium follow ISO 9223 first-year rates; steel follows the
prediction backend's calibrated scale.
"""

import math

from corrosionmap.models import ColorBin, Classification

_LABELS = ("C1", "C2", "C3", "C4", "C5", "CX")
_COLORS = ("#00ff00", "#7fff00", "#ffff00", "#ffbf00", "#ff7f00", "#ff0000")
_DESCRIPTIONS = ("Very low", "Low", "Medium", "High", "Very high", "Extreme")

_THRESHOLDS: dict[str, tuple[float, ...]] = {
    "steel": (150.0, 250.0, 400.0, 550.0, 700.0, math.inf),
    "zinc": (0.7, 5.0, 15.0, 30.0, 60.0, math.inf),
    "copper": (0.9, 5.0, 12.0, 25.0, 50.0, math.inf),
    "aluminium": (0.01, 0.6, 2.0, 5.0, 10.0, math.inf),
}

_ALIASES = {"aluminum": "aluminium"}

DEFAULT_METAL = "steel"
METALS = tuple(_THRESHOLDS)

BIN_TABLES: dict[str, tuple[ColorBin, ...]] = {
    metal: tuple(
        ColorBin(label=label, upper_bound=bound, color=color)
        for label, bound, color in zip(_LABELS, bounds, _COLORS)
    )
    for metal, bounds in _THRESHOLDS.items()
}

# Continuous heat semantics: five intensity levels on the steel scale.
_HEAT_BANDS = ((250.0, 0.2), (400.0, 0.4), (550.0, 0.6), (700.0, 0.8))


def normalize_metal(metal: str | None) -> str:
    """Canonical metal id; unknown or empty identifiers fall back to steel."""
    key = (metal or "").strip().lower()
    key = _ALIASES.get(key, key)
    return key if key in BIN_TABLES else DEFAULT_METAL


def bins_for(metal: str | None) -> tuple[ColorBin, ...]:
    return BIN_TABLES[normalize_metal(metal)]


def classify(metal: str | None, rate: float) -> Classification:
    """Return the severity class of ``rate`` for ``metal``.

    The first bin whose upper bound is >= rate wins; rates above every finite
    bound land in the last (open-ended) bin.

    Raises:
        ValueError: If ``rate`` is NaN.
    """
    rate = float(rate)
    if math.isnan(rate):
        raise ValueError("cannot classify a NaN rate")
    table = bins_for(metal)
    for index, color_bin in enumerate(table):
        if rate <= color_bin.upper_bound:
            break
    else:
        index = len(table) - 1
    chosen = table[index]
    return Classification(
        index=index, label=chosen.label, color=chosen.color, upper_bound=chosen.upper_bound
    )


def _fmt(value: float) -> str:
    return f"{value:g}"


def legend_entries(metal: str | None) -> list[dict[str, str]]:
    """Label, rate range text, description and color for each bin."""
    entries = []
    lower = None
    for color_bin, description in zip(bins_for(metal), _DESCRIPTIONS):
        if lower is None:
            span = f"≤ {_fmt(color_bin.upper_bound)}"
        elif math.isinf(color_bin.upper_bound):
            span = f"> {_fmt(lower)}"
        else:
            span = f"{_fmt(lower)}–{_fmt(color_bin.upper_bound)}"
        entries.append(
            {
                "label": color_bin.label,
                "range": span,
                "description": description,
                "color": color_bin.color,
            }
        )
        lower = color_bin.upper_bound
    return entries


def heat_intensity(rate: float) -> float:
    """Quantize a rate into one of five kernel weights (0.2 … 1.0)."""
    for bound, weight in _HEAT_BANDS:
        if rate < bound:
            return weight
    return 1.0
