"""Bayesian fusion strategies producing particle ensembles.

A strategy turns two independent point distributions into a weighted
point set approximating their normalized product. Two strategies are
provided:
- Importance: particles of one input re-weighted by the density of the other
- Gaussian product: both inputs moment-matched, product sampled
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional, Tuple, Union
import warnings

import torch
from torch import Tensor

from .base import DEFAULT_CONVERSION_SAMPLES, PointPDF, check_non_empty, check_point_pdf
from .gaussian import PointPDFGaussian
from .utils.gaussian_ops import mahalanobis_distance
from .utils.monitoring import check_numerical_health
from .utils.weights import weighted_covariance


class FusionMethod(Enum):
    """Available fusion strategies."""
    IMPORTANCE = "importance"
    GAUSSIAN_PRODUCT = "gaussian_product"


class IncompatibleDistributionError(TypeError):
    """The two distributions cannot be combined by the chosen strategy."""


class FusionStrategy(ABC):
    """Abstract base class for fusion strategies."""

    @abstractmethod
    def fuse(
        self,
        p1: PointPDF,
        p2: PointPDF,
        generator: Optional[torch.Generator] = None,
    ) -> Tuple[Tensor, Tensor]:
        """Approximate p1 * p2 with a weighted point set.

        Args:
            p1: First distribution
            p2: Second distribution
            generator: Optional random source

        Returns:
            points: [N, 3] (float32)
            log_weights: Unnormalized log weights [N] (float64)
        """
        pass


class ImportanceFusion(FusionStrategy):
    """Importance-weighted product of two distributions.

    The proposal is p1 (its own particles when it is particle-based,
    otherwise n_samples draws). Each proposal point x gets
    log w += log p2(x). If p2 cannot evaluate its density the roles are
    swapped; if neither can, the inputs are incompatible.

    Example:
        >>> strategy = ImportanceFusion(n_samples=500)
        >>> points, log_weights = strategy.fuse(gaussian_a, gaussian_b)
    """

    def __init__(self, n_samples: int = DEFAULT_CONVERSION_SAMPLES):
        """Initialize strategy.

        Args:
            n_samples: Proposal size when the proposal is not particle-based
        """
        if n_samples <= 0:
            raise ValueError(f"n_samples must be positive, got {n_samples}")
        self.n_samples = n_samples

    def fuse(
        self,
        p1: PointPDF,
        p2: PointPDF,
        generator: Optional[torch.Generator] = None,
    ) -> Tuple[Tensor, Tensor]:
        proposal, target = p1, p2
        if not target.supports_density:
            if not proposal.supports_density:
                raise IncompatibleDistributionError(
                    f"Neither {type(p1).__name__} nor {type(p2).__name__} "
                    "can evaluate its density"
                )
            proposal, target = target, proposal

        points, log_weights = proposal.as_weighted_samples(self.n_samples, generator=generator)
        log_weights = log_weights + target.log_density(points)
        return points, log_weights

    def __repr__(self) -> str:
        return f"ImportanceFusion(n_samples={self.n_samples})"


class GaussianProductFusion(FusionStrategy):
    """Sample the closed-form product of the Gaussian approximations.

    Exact for Gaussian inputs; for multi-modal inputs only the first two
    moments survive.
    """

    def __init__(self, n_samples: int = DEFAULT_CONVERSION_SAMPLES):
        if n_samples <= 0:
            raise ValueError(f"n_samples must be positive, got {n_samples}")
        self.n_samples = n_samples

    def fuse(
        self,
        p1: PointPDF,
        p2: PointPDF,
        generator: Optional[torch.Generator] = None,
    ) -> Tuple[Tensor, Tensor]:
        fused = PointPDFGaussian()
        fused.bayesian_fusion(p1, p2)
        points = fused.draw_samples(self.n_samples, generator=generator).to(torch.float32)
        return points, torch.zeros(self.n_samples, dtype=torch.float64)

    def __repr__(self) -> str:
        return f"GaussianProductFusion(n_samples={self.n_samples})"


def create_fusion_strategy(
    method: Union[str, FusionMethod] = FusionMethod.IMPORTANCE,
    **kwargs,
) -> FusionStrategy:
    """Factory function to create a fusion strategy.

    Args:
        method: Fusion method name or enum
        **kwargs: Arguments for the specific strategy

    Returns:
        FusionStrategy instance
    """
    if isinstance(method, str):
        method = FusionMethod(method)

    if method == FusionMethod.IMPORTANCE:
        return ImportanceFusion(**kwargs)
    elif method == FusionMethod.GAUSSIAN_PRODUCT:
        return GaussianProductFusion(**kwargs)
    else:
        raise ValueError(f"Unknown fusion method: {method}")


def prune_by_mahalanobis(
    points: Tensor,
    log_weights: Tensor,
    min_mahalanobis_dist_to_drop: float,
) -> Tuple[Tensor, Tensor]:
    """Drop particles far from the dominant mode.

    The dominant mode is the highest-weight particle; distances use the
    weighted covariance of the whole set. This is lossy: the surviving set
    is more compact but biased towards the dominant mode. The dominant
    particle itself always survives.

    Args:
        points: [N, 3]
        log_weights: [N]
        min_mahalanobis_dist_to_drop: Threshold; <= 0 disables pruning

    Returns:
        points, log_weights of the surviving particles
    """
    if min_mahalanobis_dist_to_drop <= 0 or points.shape[0] <= 1:
        return points, log_weights

    cov, _ = weighted_covariance(points, log_weights)
    mode = points[torch.argmax(log_weights)].to(torch.float64)
    distances = mahalanobis_distance(points, mode, cov)
    keep = distances <= min_mahalanobis_dist_to_drop
    keep[torch.argmax(log_weights)] = True
    return points[keep], log_weights[keep]


def fuse_to_particles(
    p1: PointPDF,
    p2: PointPDF,
    min_mahalanobis_dist_to_drop: float = 0.0,
    strategy: Optional[Union[str, FusionMethod, FusionStrategy]] = None,
    generator: Optional[torch.Generator] = None,
) -> Tuple[Tensor, Tensor]:
    """Run a fusion strategy and clean up its output.

    Particles with non-finite weights are discarded, the pruning threshold
    is applied and the log weights are shifted so that the largest is 0.

    Returns:
        points: [N, 3] (float32)
        log_weights: [N] (float64)

    Raises:
        TypeError: an input is not a PointPDF
        IncompatibleDistributionError: the strategy cannot mix the inputs
        ValueError: empty inputs, or every fused weight vanished
    """
    check_point_pdf(p1, "p1")
    check_point_pdf(p2, "p2")
    check_non_empty(p1, "p1")
    check_non_empty(p2, "p2")

    if strategy is None:
        strategy = FusionMethod.IMPORTANCE
    if not isinstance(strategy, FusionStrategy):
        strategy = create_fusion_strategy(strategy)

    points, log_weights = strategy.fuse(p1, p2, generator=generator)

    finite = torch.isfinite(log_weights) & torch.isfinite(points).all(dim=-1)
    if not finite.any():
        raise ValueError("Fusion produced no particle with a finite weight")
    points = points[finite].to(torch.float32)
    log_weights = log_weights[finite].to(torch.float64)

    points, log_weights = prune_by_mahalanobis(points, log_weights, min_mahalanobis_dist_to_drop)
    log_weights = log_weights - log_weights.max()

    health = check_numerical_health(points, log_weights)
    if not health["healthy"]:
        warnings.warn(
            f"Fused particle set is degenerate: {', '.join(health['warnings'])}",
            RuntimeWarning,
        )

    return points, log_weights
