"""Named colormaps for the per-row gradient position (low values first)."""

from typing import Dict, List

from textual.color import Color, Gradient

_STOPS: Dict[str, List[str]] = {
    "inferno": ["#000004", "#420a68", "#932667", "#dd513a", "#fca50a", "#fcffa4"],
    "magma": ["#000004", "#3b0f70", "#8c2981", "#de4968", "#fe9f6d", "#fcfdbf"],
    "plasma": ["#0d0887", "#6a00a8", "#b12a90", "#e16462", "#fca636", "#f0f921"],
    "viridis": ["#440154", "#414487", "#2a788e", "#22a884", "#7ad151", "#fde725"],
    "turbo": ["#30123b", "#4686fb", "#1ae4b6", "#a2fc3c", "#faba39", "#e4460a", "#7a0403"],
    "spectral": ["#5e4fa2", "#3288bd", "#66c2a5", "#abdda4", "#fee08b", "#fdae61", "#f46d43", "#9e0142"],
    "rainbow": ["#6e40aa", "#fe4b83", "#e2b72f", "#52f667", "#23abd8"],
    "cividis": ["#00224e", "#35456c", "#666970", "#948e77", "#c8b866", "#fee838"],
    "warm": ["#6e40aa", "#bf3caf", "#fe4b83", "#ff7847", "#e2b72f", "#aff05b"],
    "cool": ["#6e40aa", "#4c6edb", "#23abd8", "#1ddfa3", "#52f667", "#aff05b"],
}

COLORMAP_NAMES = list(_STOPS)

_gradients: Dict[str, Gradient] = {}


def gradient(name: str) -> Gradient:
    if name not in _gradients:
        colors = _STOPS[name]
        last = len(colors) - 1
        _gradients[name] = Gradient(*[(i / last, Color.parse(c)) for i, c in enumerate(colors)])
    return _gradients[name]


def color_at(name: str, position: float) -> Color:
    return gradient(name).get_color(min(max(position, 0.0), 1.0))


def next_colormap(name: str) -> str:
    return COLORMAP_NAMES[(COLORMAP_NAMES.index(name) + 1) % len(COLORMAP_NAMES)]


def prev_colormap(name: str) -> str:
    return COLORMAP_NAMES[(COLORMAP_NAMES.index(name) - 1) % len(COLORMAP_NAMES)]
