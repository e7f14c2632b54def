"""Map legends: fixed corrosivity classes and the continuous raster ramp."""

import html

from branca.colormap import LinearColormap
from branca.element import Element

from corrosionmap.classify import legend_entries, normalize_metal
from corrosionmap.colormap import jet_hex_stops
from corrosionmap.models import RasterImage

UNIT = "g/m²/yr (ISO 9223)"


def classification_legend_html(metal: str) -> str:
    """Fixed-position HTML legend listing the metal's C1…CX classes."""
    rows = "".join(
        f"<li><span style='background:{e['color']}'></span>"
        f"<b>{e['label']}</b>&nbsp;{html.escape(e['range'])}"
        f"<small>&nbsp;{html.escape(e['description'])}</small></li>"
        for e in legend_entries(metal)
    )
    title = f"Corrosivity category · {normalize_metal(metal).capitalize()}"
    return f"""
    <div class="corrosion-legend" style="position: fixed; bottom: 24px; right: 24px; z-index: 1000;
                background: white; padding: 10px 12px; border: 1px solid #aaa; border-radius: 10px;">
      <div style="font-weight:600;margin-bottom:6px">{html.escape(title)}</div>
      <ul style="list-style:none; padding:0; margin:0">{rows}</ul>
      <div style="font-size:11px;margin-top:6px;color:#444">Unit: {html.escape(UNIT)}</div>
    </div>
    <style>
    .corrosion-legend li {{ display:flex; align-items:center; gap:6px; font-size:12px; }}
    .corrosion-legend li span {{ display:inline-block; width:14px; height:14px;
                                 border-radius:50%; border:1px solid #999; }}
    </style>"""


def classification_legend(metal: str) -> Element:
    return Element(classification_legend_html(metal))


def raster_colormap(raster: RasterImage, caption: str = "Predicted corrosion rate") -> LinearColormap:
    """Continuous legend spanning the raster's own min/max."""
    vmax = raster.value_max if raster.value_max > raster.value_min else raster.value_min + 1
    cmap = LinearColormap(colors=jet_hex_stops(5), vmin=raster.value_min, vmax=vmax)
    cmap.caption = f"{caption} ({raster.value_min:.0f} → {raster.value_max:.0f} g/m²/yr)"
    return cmap
