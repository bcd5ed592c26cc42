"""Visualization for point distributions.

Quick Start:
    >>> from pointpdf.utils.visualization import plot_particles
    >>> fig, ax = plot_particles(pdf, dims=(0, 1), theme="paper")
    >>> fig.savefig("cloud.png")

Requires matplotlib (optional dependency).
"""

from .themes import (
    Theme,
    DEFAULT_THEME,
    PAPER_THEME,
    AVAILABLE_THEMES,
    get_theme,
)
from .plots import (
    HAS_MATPLOTLIB,
    covariance_ellipse,
    plot_particles,
)

__all__ = [
    "Theme",
    "DEFAULT_THEME",
    "PAPER_THEME",
    "AVAILABLE_THEMES",
    "get_theme",
    "HAS_MATPLOTLIB",
    "covariance_ellipse",
    "plot_particles",
]
