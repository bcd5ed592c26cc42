"""Abstract base class for probability distributions over a 3D point.

Every representation (Gaussian, sum of Gaussians, particles) implements
the same capability set, so callers can query statistics, draw samples,
re-reference and fuse distributions without knowing which variant they
hold.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence, Tuple, Union, TYPE_CHECKING

import torch
from torch import Tensor

if TYPE_CHECKING:
    from .pose import Pose3D

PointLike = Union[Tensor, Sequence[float]]

# Number of samples used when a non-particle distribution is converted
# into particles and no explicit count is available.
DEFAULT_CONVERSION_SAMPLES = 1000


def as_point(value: PointLike, dtype: torch.dtype = torch.float32) -> Tensor:
    """Convert a 3-element sequence or tensor into a [3] tensor."""
    point = torch.as_tensor(value, dtype=dtype).reshape(-1)
    if point.shape != (3,):
        raise ValueError(f"A point must have exactly 3 coordinates, got {tuple(point.shape)}")
    return point.clone()


class PointPDF(ABC):
    """Abstract base class for 3D point distributions.

    All implementations must provide:
    - get_covariance_and_mean: first and second moments
    - draw_samples: random draws (optionally from a seeded generator)
    - copy_from: conversion from any other PointPDF
    - change_coordinates_reference: this = pose (+) this
    - bayesian_fusion: product of two distributions, stored in this object
    - save_to_text_file: plain text dump

    Implementations that can evaluate their density override log_density
    and set supports_density to True.
    """

    supports_density: bool = False

    def is_empty(self) -> bool:
        """True when the distribution holds no particles or modes."""
        return False

    def get_mean(self) -> Tensor:
        """Mean of the distribution [3] (float64)."""
        _, mean = self.get_covariance_and_mean()
        return mean

    @abstractmethod
    def get_covariance_and_mean(self) -> Tuple[Tensor, Tensor]:
        """Return (cov [3, 3], mean [3]), both float64."""
        pass

    def get_covariance(self) -> Tensor:
        cov, _ = self.get_covariance_and_mean()
        return cov

    def get_information_matrix(self) -> Tensor:
        """Inverse covariance; the pseudo-inverse when it is singular."""
        return torch.linalg.pinv(self.get_covariance(), hermitian=True)

    @abstractmethod
    def draw_samples(
        self,
        n_samples: int,
        generator: Optional[torch.Generator] = None,
    ) -> Tensor:
        """Draw n_samples points [n_samples, 3]."""
        pass

    def draw_single_sample(self, generator: Optional[torch.Generator] = None) -> Tensor:
        """Draw a single point [3]."""
        return self.draw_samples(1, generator=generator)[0]

    def as_weighted_samples(
        self,
        n_samples: int = DEFAULT_CONVERSION_SAMPLES,
        generator: Optional[torch.Generator] = None,
    ) -> Tuple[Tensor, Tensor]:
        """Represent this distribution as a weighted point set.

        Returns:
            points: [N, 3] (float32)
            log_weights: [N] (float64)
        """
        points = self.draw_samples(n_samples, generator=generator).to(torch.float32)
        return points, torch.zeros(points.shape[0], dtype=torch.float64)

    def log_density(self, points: Tensor) -> Tensor:
        """Evaluate log p(x) for points [M, 3] (optional).

        Returns:
            log_density: [M] (float64)
        """
        raise NotImplementedError(
            f"{self.__class__.__name__} does not support density evaluation"
        )

    @abstractmethod
    def copy_from(self, other: "PointPDF", **kwargs) -> None:
        """Replace this distribution by an equivalent of other."""
        pass

    @abstractmethod
    def change_coordinates_reference(self, new_reference_base: "Pose3D") -> None:
        """this = new_reference_base (+) this."""
        pass

    @abstractmethod
    def bayesian_fusion(
        self,
        p1: "PointPDF",
        p2: "PointPDF",
        min_mahalanobis_dist_to_drop: float = 0.0,
        **kwargs,
    ) -> None:
        """Store the (approximate) normalized product of p1 and p2 in this object."""
        pass

    @abstractmethod
    def save_to_text_file(self, path: str) -> bool:
        """Write a text dump; returns False on I/O errors."""
        pass


def check_point_pdf(value, name: str = "argument") -> "PointPDF":
    """Raise TypeError unless value is a PointPDF."""
    if not isinstance(value, PointPDF):
        raise TypeError(
            f"{name} must be a PointPDF, got {type(value).__name__}"
        )
    return value


def check_non_empty(value: "PointPDF", name: str = "argument") -> "PointPDF":
    """Raise ValueError if value holds no particles or modes."""
    if value.is_empty():
        raise ValueError(f"{name} is an empty {type(value).__name__}")
    return value
