"""Log-space weight operations for numerical stability.

All weight operations are performed in log-space. Linear weights are only
materialized after subtracting the maximum log weight, so that a particle
set whose log weights are all very large or all very small still yields
finite, normalized weights.
"""

from typing import Optional, Tuple
import warnings

import torch
from torch import Tensor


def safe_logsumexp(
    log_weights: Tensor,
    dim: int = -1,
    keepdim: bool = False,
) -> Tensor:
    """Numerically stable logsumexp operation.

    Equivalent to torch.logsumexp but with additional NaN/Inf checking.

    Args:
        log_weights: Log weights tensor
        dim: Dimension to reduce
        keepdim: Whether to keep the reduced dimension

    Returns:
        Result of logsumexp operation
    """
    result = torch.logsumexp(log_weights, dim=dim, keepdim=keepdim)

    # Check for numerical issues
    if torch.isnan(result).any() or torch.isinf(result).any():
        warnings.warn("NaN/Inf detected in logsumexp, returning zeros", RuntimeWarning)
        result = torch.where(
            torch.isnan(result) | torch.isinf(result),
            torch.zeros_like(result),
            result
        )

    return result


def normalized_weights(log_weights: Tensor) -> Tensor:
    """Convert log weights [N] into linear weights that sum to one.

    w_i = exp(lw_i - max(lw)) / sum_j exp(lw_j - max(lw))

    The largest term is exp(0) = 1, so the normalizer is never below one.
    A vector without a finite maximum (all -inf, or NaN present) falls back
    to uniform weights with a warning.

    Args:
        log_weights: Unnormalized log weights [N]

    Returns:
        weights: Normalized weights [N] (float64)
    """
    log_weights = log_weights.to(torch.float64)
    n = log_weights.numel()
    if n == 0:
        return log_weights.new_zeros(0)

    max_log_weight = log_weights.max()
    if not torch.isfinite(max_log_weight):
        warnings.warn(
            "Non-finite maximum log weight, falling back to uniform weights",
            RuntimeWarning,
        )
        return torch.full_like(log_weights, 1.0 / n)

    weights = torch.exp(log_weights - max_log_weight)
    weights = torch.nan_to_num(weights, nan=0.0)
    return weights / weights.sum()


def normalize_log_weights(
    log_weights: Tensor,
    dim: int = -1,
) -> Tensor:
    """Normalize log weights so that exp(log_weights).sum(dim) = 1.

    Args:
        log_weights: Unnormalized log weights [..., N]
        dim: Dimension to normalize over

    Returns:
        Normalized log weights [..., N]
    """
    log_normalizer = safe_logsumexp(log_weights, dim=dim, keepdim=True)
    return log_weights - log_normalizer


def init_uniform_log_weights(
    n_particles: int,
    dtype: torch.dtype = torch.float64,
    device: Optional[torch.device] = None,
) -> Tensor:
    """Initialize uniform, unnormalized log weights (all zero).

    Args:
        n_particles: Number of particles N
        dtype: Target dtype
        device: Target device

    Returns:
        log_weights: Zeros [N]
    """
    return torch.zeros(n_particles, dtype=dtype, device=device)


def compute_ess(
    log_weights: Tensor,
    dim: int = -1,
    already_normalized: bool = False,
) -> Tensor:
    """Compute Effective Sample Size (ESS) from log weights.

    ESS = 1 / sum(w_i^2) where w_i are normalized weights.

    ESS = N means uniform weights (maximum diversity).
    ESS = 1 means one particle dominates (degeneracy).

    Args:
        log_weights: Log weights [..., N]
        dim: Dimension containing particles
        already_normalized: If True, skip normalization (caller guarantees normalized)

    Returns:
        ess: Effective sample size [...]
    """
    if already_normalized:
        log_weights_norm = log_weights
    else:
        log_weights_norm = normalize_log_weights(log_weights, dim=dim)

    # In log space: log(ESS) = -log(sum(exp(2 * log_w)))
    log_sum_sq = safe_logsumexp(2.0 * log_weights_norm, dim=dim)
    return torch.exp(-log_sum_sq)


def compute_entropy(log_weights: Tensor, dim: int = -1) -> Tensor:
    """Compute entropy of particle weight distribution.

    H = -sum(w_i * log(w_i))

    Args:
        log_weights: Log weights [..., N]
        dim: Dimension containing particles

    Returns:
        entropy: Weight distribution entropy [...]
    """
    log_weights_norm = normalize_log_weights(log_weights, dim=dim)
    weights = torch.exp(log_weights_norm)
    return -(weights * log_weights_norm).sum(dim=dim)


def _centered(values: Tensor, weights: Tensor) -> Tuple[Tensor, Tensor]:
    # Offsets from the heaviest particle keep coincident or far-off points exact
    reference = values[torch.argmax(weights)]
    offsets = values - reference
    shift = (weights.unsqueeze(-1) * offsets).sum(dim=0)
    return reference + shift, offsets - shift


def weighted_mean(values: Tensor, log_weights: Tensor) -> Tensor:
    """Compute weighted mean of values using log weights.

    mean = sum(w_i * v_i)

    Args:
        values: Values tensor [N, D]
        log_weights: Unnormalized log weights [N]

    Returns:
        weighted_mean: Mean over particles [D] (float64); zeros when N == 0
    """
    values = values.to(torch.float64)
    if values.shape[0] == 0:
        return values.new_zeros(values.shape[1:])

    mean, _ = _centered(values, normalized_weights(log_weights))
    return mean


def weighted_covariance(values: Tensor, log_weights: Tensor) -> Tuple[Tensor, Tensor]:
    """Compute weighted covariance and mean in one normalization pass.

    cov = sum(w_i * (v_i - mean)(v_i - mean)^T)

    Only the upper triangle is kept and mirrored, so the result is exactly
    symmetric.

    Args:
        values: Values tensor [N, D]
        log_weights: Unnormalized log weights [N]

    Returns:
        cov: Covariance [D, D] (float64)
        mean: Mean [D] (float64)
    """
    values = values.to(torch.float64)
    dim = values.shape[-1]
    if values.shape[0] == 0:
        return values.new_zeros(dim, dim), values.new_zeros(dim)

    weights = normalized_weights(log_weights)
    mean, centered = _centered(values, weights)
    cov = (weights.unsqueeze(-1) * centered).T @ centered

    upper = torch.triu(cov)
    cov = upper + torch.triu(cov, diagonal=1).T
    return cov, mean


def weighted_kurtosis(values: Tensor, log_weights: Tensor, eps: float = 1e-12) -> Tensor:
    """Compute per-dimension kurtosis mu4 / sigma^4 using log weights.

    Uses the same normalized weights as weighted_mean/weighted_covariance.
    Dimensions whose variance is below eps report 0.

    Args:
        values: Values tensor [N, D]
        log_weights: Unnormalized log weights [N]
        eps: Variance floor below which a dimension is degenerate

    Returns:
        kurtosis: Per-dimension kurtosis [D] (float64)
    """
    values = values.to(torch.float64)
    if values.shape[0] == 0:
        return values.new_zeros(values.shape[1:])

    weights = normalized_weights(log_weights)
    _, centered = _centered(values, weights)
    weights = weights.unsqueeze(-1)
    variance = (weights * centered ** 2).sum(dim=0)
    fourth_moment = (weights * centered ** 4).sum(dim=0)

    degenerate = variance <= eps
    safe_variance = torch.where(degenerate, torch.ones_like(variance), variance)
    return torch.where(
        degenerate,
        torch.zeros_like(variance),
        fourth_moment / safe_variance ** 2,
    )
