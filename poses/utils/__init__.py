"""Core utilities for particle point distributions."""

from .weights import (
    safe_logsumexp,
    normalized_weights,
    normalize_log_weights,
    init_uniform_log_weights,
    compute_ess,
    compute_entropy,
    weighted_mean,
    weighted_covariance,
    weighted_kurtosis,
)
from .sampling import (
    sample_indices,
    sample_index,
)
from .gaussian_ops import (
    stable_cholesky,
    mahalanobis_distance,
    gaussian_log_density,
    sample_gaussian,
    gaussian_product,
)
from .monitoring import (
    compute_particle_diversity,
    check_numerical_health,
)

__all__ = [
    # Weights
    "safe_logsumexp",
    "normalized_weights",
    "normalize_log_weights",
    "init_uniform_log_weights",
    "compute_ess",
    "compute_entropy",
    "weighted_mean",
    "weighted_covariance",
    "weighted_kurtosis",
    # Sampling
    "sample_indices",
    "sample_index",
    # Gaussian operations
    "stable_cholesky",
    "mahalanobis_distance",
    "gaussian_log_density",
    "sample_gaussian",
    "gaussian_product",
    # Monitoring
    "compute_particle_diversity",
    "check_numerical_health",
]
