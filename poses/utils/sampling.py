"""Weighted index sampling for particle ensembles.

Draws particle indices with probability equal to the normalized weights.
All randomness flows through an optional torch.Generator so that draws
are reproducible for a seeded source.
"""

from typing import Optional

import torch
from torch import Tensor

from .weights import normalized_weights


def sample_indices(
    log_weights: Tensor,
    n_samples: int,
    generator: Optional[torch.Generator] = None,
) -> Tensor:
    """Sample particle indices proportionally to their weights.

    Args:
        log_weights: Unnormalized log weights [N]
        n_samples: Number of indices to draw (with replacement)
        generator: Optional random source

    Returns:
        indices: Sampled indices [n_samples] (int64)
    """
    if log_weights.numel() == 0:
        raise ValueError("Cannot sample from an empty particle set")
    if n_samples < 0:
        raise ValueError(f"n_samples must be non-negative, got {n_samples}")
    if n_samples == 0:
        return torch.zeros(0, dtype=torch.long)

    weights = normalized_weights(log_weights)
    return torch.multinomial(weights, n_samples, replacement=True, generator=generator)


def sample_index(
    log_weights: Tensor,
    generator: Optional[torch.Generator] = None,
) -> int:
    """Sample a single particle index proportionally to its weight."""
    return int(sample_indices(log_weights, 1, generator=generator)[0])
