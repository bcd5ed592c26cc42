"""Scatter plots of point distributions.

Particles are drawn as a 2D projection with marker area proportional to
their normalized weight, together with the weighted mean and an n-sigma
covariance ellipse.
"""

from typing import Optional, Sequence, Tuple, Union, TYPE_CHECKING

import numpy as np
import torch

# Matplotlib imports with lazy loading
try:
    import matplotlib.pyplot as plt
    from matplotlib.patches import Ellipse
    HAS_MATPLOTLIB = True
except ImportError:
    HAS_MATPLOTLIB = False

from ...poses.utils.weights import normalized_weights
from .themes import Theme, get_theme

if TYPE_CHECKING:
    from ...poses.base import PointPDF

AXIS_NAMES = ("x", "y", "z")


def _check_matplotlib():
    """Check matplotlib is available."""
    if not HAS_MATPLOTLIB:
        raise ImportError(
            "matplotlib is required for visualization. "
            "Install with: pip install matplotlib"
        )


def covariance_ellipse(
    cov: np.ndarray,
    n_sigma: float = 2.0,
) -> Tuple[float, float, float]:
    """Width, height and angle (degrees) of the n-sigma ellipse of a 2x2 covariance."""
    eigvals, eigvecs = np.linalg.eigh(cov)
    eigvals = np.clip(eigvals, 0.0, None)
    major = eigvecs[:, 1]
    angle = float(np.degrees(np.arctan2(major[1], major[0])))
    width = 2.0 * n_sigma * float(np.sqrt(eigvals[1]))
    height = 2.0 * n_sigma * float(np.sqrt(eigvals[0]))
    return width, height, angle


def plot_particles(
    pdf: "PointPDF",
    ax=None,
    dims: Sequence[int] = (0, 1),
    show_covariance: bool = True,
    n_sigma: float = 2.0,
    n_samples: int = 1000,
    theme: Optional[Union[str, Theme]] = None,
    title: Optional[str] = None,
    generator: Optional[torch.Generator] = None,
):
    """Plot a point distribution projected onto two axes.

    Args:
        pdf: Any PointPDF; non-particle distributions are sampled
        ax: Matplotlib axes (created if None)
        dims: Pair of axis indices to project on (0=x, 1=y, 2=z)
        show_covariance: Whether to draw the covariance ellipse
        n_sigma: Ellipse size in standard deviations
        n_samples: Draws used for non-particle distributions
        theme: Theme or theme name
        title: Optional axes title
        generator: Optional random source for sampling

    Returns:
        Matplotlib figure and axes
    """
    _check_matplotlib()
    if len(dims) != 2:
        raise ValueError(f"dims must name exactly two axes, got {dims}")
    if isinstance(theme, str):
        theme = get_theme(theme)
    theme = theme or get_theme("default")

    if ax is None:
        fig, ax = plt.subplots(figsize=theme.figsize)
    else:
        fig = ax.get_figure()

    points, log_weights = pdf.as_weighted_samples(n_samples, generator=generator)
    i, j = dims
    xy = points[:, [i, j]].to(torch.float64).numpy()
    weights = normalized_weights(log_weights).numpy()

    lo, hi = theme.marker_size_range
    if weights.size > 0:
        sizes = lo + (hi - lo) * weights / weights.max()
        ax.scatter(
            xy[:, 0], xy[:, 1],
            s=sizes,
            c=theme.colors["particles"],
            alpha=theme.particle_alpha,
            linewidths=0,
            label="particles",
        )

    cov, mean = pdf.get_covariance_and_mean()
    mean_xy = mean[[i, j]].numpy()
    ax.plot(mean_xy[0], mean_xy[1], "+", color=theme.colors["mean"], markersize=12, label="mean")

    if show_covariance:
        cov_xy = cov[[i, j]][:, [i, j]].numpy()
        width, height, angle = covariance_ellipse(cov_xy, n_sigma)
        ax.add_patch(Ellipse(
            xy=(mean_xy[0], mean_xy[1]),
            width=width,
            height=height,
            angle=angle,
            fill=False,
            edgecolor=theme.colors["covariance"],
            linewidth=1.5,
            label=f"{n_sigma:g}-sigma",
        ))

    ax.set_xlabel(AXIS_NAMES[i], fontsize=theme.font_sizes["axis_label"])
    ax.set_ylabel(AXIS_NAMES[j], fontsize=theme.font_sizes["axis_label"])
    ax.set_aspect("equal", adjustable="datalim")
    if title:
        ax.set_title(title, fontsize=theme.font_sizes["title"])
    theme.apply_to_axes(ax)
    ax.legend(loc="best")

    return fig, ax
