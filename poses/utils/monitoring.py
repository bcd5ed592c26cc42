"""Monitoring and diagnostic utilities for particle ensembles.

Provides tools for:
- Measuring particle spread (diversity)
- Detecting numerical issues (NaN, Inf, weight degeneracy)
"""

from typing import Dict, Optional, Any

import torch
from torch import Tensor

from .weights import compute_entropy, compute_ess, normalized_weights


def compute_particle_diversity(points: Tensor, max_pairwise: int = 1000) -> Dict[str, float]:
    """Compute diversity metrics for a particle cloud.

    Args:
        points: Particle points [N, D]
        max_pairwise: Only the first max_pairwise particles enter the
            pairwise distance average

    Returns:
        Dict with diversity metrics
    """
    points = points.to(torch.float64)
    n = points.shape[0]

    metrics = {}
    if n < 2:
        metrics["variance_per_dim"] = 0.0
        metrics["avg_pairwise_distance"] = 0.0
        metrics["effective_dimension"] = 0.0
        return metrics

    # 1. Variance across particles (per dimension, averaged)
    dim_vars = points.var(dim=0)  # [D]
    metrics["variance_per_dim"] = dim_vars.mean().item()

    # 2. Average pairwise distance, self-distances masked
    subset = points[:max_pairwise]
    dists = torch.cdist(subset, subset)  # [M, M]
    mask = ~torch.eye(subset.shape[0], dtype=torch.bool)
    metrics["avg_pairwise_distance"] = dists[mask].mean().item()

    # 3. Effective dimension (participation ratio)
    total_var = dim_vars.sum()
    sum_sq_var = (dim_vars ** 2).sum()
    metrics["effective_dimension"] = (total_var ** 2 / (sum_sq_var + 1e-12)).item()

    return metrics


def check_numerical_health(
    points: Tensor,
    log_weights: Tensor,
    thresholds: Optional[Dict[str, float]] = None,
) -> Dict[str, Any]:
    """Check numerical health of a particle ensemble.

    Args:
        points: Particle points [N, D]
        log_weights: Log weights [N]
        thresholds: Optional dict of threshold values

    Returns:
        Dict with health checks and any warnings
    """
    thresholds = thresholds or {
        "max_point_norm": 1e6,
        "min_ess_ratio": 0.01,
        "max_weight_ratio": 0.99,
    }

    health = {
        "healthy": True,
        "warnings": [],
        "metrics": {},
    }

    n = points.shape[0]
    if n == 0:
        health["metrics"]["n_particles"] = 0
        return health
    health["metrics"]["n_particles"] = n

    # Check for NaN
    has_nan = bool(torch.isnan(points).any() or torch.isnan(log_weights).any())
    if has_nan:
        health["healthy"] = False
        health["warnings"].append("NaN detected")
    health["metrics"]["has_nan"] = has_nan

    # Check for Inf
    has_inf = bool(torch.isinf(points).any() or torch.isinf(log_weights).any())
    if has_inf:
        health["healthy"] = False
        health["warnings"].append("Inf detected")
    health["metrics"]["has_inf"] = has_inf

    if has_nan or has_inf:
        return health

    # Check point norms
    max_norm = points.to(torch.float64).norm(dim=-1).max().item()
    health["metrics"]["max_point_norm"] = max_norm
    if max_norm > thresholds["max_point_norm"]:
        health["warnings"].append(f"Large point norm: {max_norm:.2f}")

    # Check ESS
    ess_ratio = compute_ess(log_weights.to(torch.float64)).item() / n
    health["metrics"]["ess_ratio"] = ess_ratio
    if ess_ratio < thresholds["min_ess_ratio"]:
        health["healthy"] = False
        health["warnings"].append(f"Low ESS ratio: {ess_ratio:.3f}")

    # Check weight degeneracy
    max_weight = normalized_weights(log_weights).max().item()
    health["metrics"]["max_weight"] = max_weight
    if n > 1 and max_weight > thresholds["max_weight_ratio"]:
        health["warnings"].append(f"Weight degeneracy: max_w={max_weight:.3f}")

    health["metrics"]["entropy"] = compute_entropy(log_weights.to(torch.float64)).item()

    return health
