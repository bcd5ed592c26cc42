"""Visual themes for particle cloud plots.

Two themes ship with the package: default (screen) and paper
(grayscale, publication-ready).
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple


@dataclass
class Theme:
    """Styling for particle cloud plots.

    Attributes:
        name: Theme identifier
        colors: Colors for particles, mean, covariance ellipse and text
        font_sizes: Font sizes for titles, labels and ticks
        marker_size_range: (smallest, largest) marker area in points^2,
            mapped onto the particle weights
        particle_alpha: Particle marker transparency
        figsize: Default figure size
    """
    name: str
    colors: Dict[str, str] = field(default_factory=dict)
    font_sizes: Dict[str, int] = field(default_factory=dict)
    marker_size_range: Tuple[float, float] = (2.0, 40.0)
    particle_alpha: float = 0.6
    figsize: Tuple[int, int] = (6, 6)

    def __post_init__(self):
        if not self.colors:
            self.colors = {
                "particles": "#1f77b4",
                "mean": "#d62728",
                "covariance": "#ff7f0e",
                "grid": "#e0e0e0",
                "text": "#333333",
            }
        if not self.font_sizes:
            self.font_sizes = {
                "title": 13,
                "axis_label": 11,
                "tick_label": 9,
            }

    def apply_to_axes(self, ax) -> None:
        """Apply grid and tick styling to matplotlib axes."""
        ax.grid(True, color=self.colors["grid"], alpha=0.5)
        ax.tick_params(labelsize=self.font_sizes["tick_label"], colors=self.colors["text"])


DEFAULT_THEME = Theme(name="default")

PAPER_THEME = Theme(
    name="paper",
    colors={
        "particles": "#555555",
        "mean": "#000000",
        "covariance": "#000000",
        "grid": "#cccccc",
        "text": "#000000",
    },
    font_sizes={
        "title": 11,
        "axis_label": 10,
        "tick_label": 8,
    },
    marker_size_range=(1.0, 20.0),
    particle_alpha=0.4,
    figsize=(4, 4),
)

AVAILABLE_THEMES = {
    "default": DEFAULT_THEME,
    "paper": PAPER_THEME,
}


def get_theme(name: str) -> Theme:
    """Get theme by name.

    Raises:
        ValueError: If theme name is not recognized
    """
    if name not in AVAILABLE_THEMES:
        raise ValueError(
            f"Unknown theme '{name}'. Available themes: {list(AVAILABLE_THEMES.keys())}"
        )
    return AVAILABLE_THEMES[name]
