"""Gaussian helper operations shared by the point distributions.

Log-densities go through a Cholesky factor for numerical stability; a
covariance that is only positive semi-definite is regularized with a
growing diagonal jitter until the factorization succeeds.
"""

from typing import Optional, Tuple
import math

import torch
from torch import Tensor


def stable_cholesky(
    cov: Tensor,
    initial_jitter: float = 1e-10,
    max_tries: int = 8,
) -> Tensor:
    """Lower Cholesky factor of a (possibly singular) covariance.

    Args:
        cov: Covariance [D, D]
        initial_jitter: First diagonal jitter, scaled by the mean variance
        max_tries: Number of tenfold jitter increases before giving up

    Returns:
        L: Lower triangular factor [D, D] with L @ L.T ~= cov
    """
    cov = cov.to(torch.float64)
    L, info = torch.linalg.cholesky_ex(cov)
    if int(info) == 0:
        return L

    dim = cov.shape[-1]
    eye = torch.eye(dim, dtype=cov.dtype, device=cov.device)
    scale = max(float(torch.diagonal(cov).abs().mean()), 1.0)
    jitter = initial_jitter * scale
    for _ in range(max_tries):
        L, info = torch.linalg.cholesky_ex(cov + jitter * eye)
        if int(info) == 0:
            return L
        jitter *= 10.0

    raise ValueError("Covariance is not positive semi-definite")


def mahalanobis_distance(points: Tensor, mean: Tensor, cov: Tensor) -> Tensor:
    """Mahalanobis distance of points [M, D] (or [D]) to N(mean, cov).

    A singular covariance is handled through its pseudo-inverse.

    Returns:
        distances: [M] (or scalar)
    """
    points = points.to(torch.float64)
    diff = points - mean.to(torch.float64)
    info = torch.linalg.pinv(cov.to(torch.float64), hermitian=True)
    sq = (diff @ info * diff).sum(dim=-1)
    return torch.sqrt(sq.clamp(min=0.0))


def gaussian_log_density(points: Tensor, mean: Tensor, cov: Tensor) -> Tensor:
    """Log-density of a multivariate Gaussian N(mean, cov).

    log p = -0.5 * (D log(2 pi) + log|cov| + (x - mu)^T cov^-1 (x - mu))

    Args:
        points: Query points [M, D]
        mean: Mean [D]
        cov: Covariance [D, D]

    Returns:
        log_density: [M] (float64)
    """
    points = points.to(torch.float64)
    dim = points.shape[-1]
    L = stable_cholesky(cov)
    diff = (points - mean.to(torch.float64)).T  # [D, M]
    z = torch.linalg.solve_triangular(L, diff, upper=False)
    quad = (z ** 2).sum(dim=0)
    log_det = 2.0 * torch.log(torch.diagonal(L)).sum()
    return -0.5 * (dim * math.log(2.0 * math.pi) + log_det + quad)


def sample_gaussian(
    mean: Tensor,
    cov: Tensor,
    n_samples: int,
    generator: Optional[torch.Generator] = None,
) -> Tensor:
    """Draw n_samples from N(mean, cov) as mean + L z.

    Args:
        mean: Mean [D]
        cov: Covariance [D, D]
        n_samples: Number of samples
        generator: Optional random source

    Returns:
        samples: [n_samples, D] (float64)
    """
    mean = mean.to(torch.float64)
    L = stable_cholesky(cov)
    z = torch.randn(
        n_samples, mean.shape[-1], dtype=torch.float64, generator=generator
    )
    return mean + z @ L.T


def gaussian_product(
    mean1: Tensor,
    cov1: Tensor,
    mean2: Tensor,
    cov2: Tensor,
) -> Tuple[Tensor, Tensor, Tensor]:
    """Normalized product of two Gaussian densities.

    N(x; m1, C1) N(x; m2, C2) = N(m1; m2, C1 + C2) N(x; m, C)

    with K = C1 (C1 + C2)^-1, m = m1 + K (m2 - m1), C = C1 - K C1.

    Returns:
        mean: Fused mean [D]
        cov: Fused covariance [D, D] (symmetrized)
        log_scale: log N(m1; m2, C1 + C2), the log of the product's mass
    """
    mean1 = mean1.to(torch.float64)
    mean2 = mean2.to(torch.float64)
    cov1 = cov1.to(torch.float64)
    cov2 = cov2.to(torch.float64)

    innovation_cov = cov1 + cov2
    L = stable_cholesky(innovation_cov)
    # K^T = S^-1 C1 (S symmetric)
    gain = torch.cholesky_solve(cov1, L).T
    mean = mean1 + gain @ (mean2 - mean1)
    cov = cov1 - gain @ cov1
    cov = 0.5 * (cov + cov.T)

    log_scale = gaussian_log_density(mean1.unsqueeze(0), mean2, innovation_cov)[0]
    return mean, cov, log_scale
