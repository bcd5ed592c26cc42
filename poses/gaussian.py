"""Gaussian representation of a 3D point distribution."""

from typing import Optional, Tuple

import torch
from torch import Tensor

from .base import PointPDF, PointLike, check_non_empty, check_point_pdf
from .pose import Pose3D
from .utils.gaussian_ops import (
    gaussian_log_density,
    gaussian_product,
    mahalanobis_distance,
    sample_gaussian,
)


class PointPDFGaussian(PointPDF):
    """A 3D point distributed as N(mean, cov).

    Fusion and re-referencing are exact: the product of two Gaussians and
    an affine map of a Gaussian are both Gaussian.

    Example:
        >>> pdf = PointPDFGaussian(mean=[1.0, 2.0, 0.0], cov=0.1 * torch.eye(3))
        >>> pdf.draw_single_sample(generator=torch.Generator().manual_seed(0))
    """

    supports_density = True

    def __init__(
        self,
        mean: Optional[PointLike] = None,
        cov: Optional[Tensor] = None,
    ):
        """Initialize Gaussian.

        Args:
            mean: Mean point (origin if None)
            cov: 3x3 covariance (zero matrix if None)
        """
        if mean is None:
            mean = torch.zeros(3)
        if cov is None:
            cov = torch.zeros(3, 3)
        self.mean = mean
        self.cov = cov

    @property
    def mean(self) -> Tensor:
        return self._mean.clone()

    @mean.setter
    def mean(self, value: PointLike):
        mean = torch.as_tensor(value, dtype=torch.float64).reshape(-1)
        if mean.shape != (3,):
            raise ValueError(f"mean must have 3 elements, got {tuple(mean.shape)}")
        self._mean = mean.clone()

    @property
    def cov(self) -> Tensor:
        return self._cov.clone()

    @cov.setter
    def cov(self, value: Tensor):
        cov = torch.as_tensor(value, dtype=torch.float64)
        if cov.shape != (3, 3):
            raise ValueError(f"cov must be 3x3, got {tuple(cov.shape)}")
        self._cov = 0.5 * (cov + cov.T)

    def get_covariance_and_mean(self) -> Tuple[Tensor, Tensor]:
        return self._cov.clone(), self._mean.clone()

    def draw_samples(
        self,
        n_samples: int,
        generator: Optional[torch.Generator] = None,
    ) -> Tensor:
        return sample_gaussian(self._mean, self._cov, n_samples, generator=generator)

    def log_density(self, points: Tensor) -> Tensor:
        points = torch.as_tensor(points).reshape(-1, 3)
        return gaussian_log_density(points, self._mean, self._cov)

    def mahalanobis_distance(self, point: PointLike) -> float:
        """Mahalanobis distance from point to this distribution."""
        point = torch.as_tensor(point, dtype=torch.float64).reshape(3)
        return float(mahalanobis_distance(point, self._mean, self._cov))

    def copy_from(self, other: PointPDF, **kwargs) -> None:
        """Moment-match any other point distribution."""
        check_point_pdf(other, "other")
        check_non_empty(other, "other")
        cov, mean = other.get_covariance_and_mean()
        self._mean = mean.to(torch.float64).clone()
        self._cov = cov.to(torch.float64).clone()

    def change_coordinates_reference(self, new_reference_base: Pose3D) -> None:
        rot = new_reference_base.rotation
        self._mean = new_reference_base.apply(self._mean)
        cov = rot @ self._cov @ rot.T
        self._cov = 0.5 * (cov + cov.T)

    def bayesian_fusion(
        self,
        p1: PointPDF,
        p2: PointPDF,
        min_mahalanobis_dist_to_drop: float = 0.0,
        **kwargs,
    ) -> None:
        """Closed-form product of the Gaussian approximations of p1 and p2.

        Non-Gaussian inputs are moment-matched first. The pruning threshold
        has no effect on a single-mode result.
        """
        check_point_pdf(p1, "p1")
        check_point_pdf(p2, "p2")
        check_non_empty(p1, "p1")
        check_non_empty(p2, "p2")
        cov1, mean1 = p1.get_covariance_and_mean()
        cov2, mean2 = p2.get_covariance_and_mean()
        mean, cov, _ = gaussian_product(mean1, cov1, mean2, cov2)
        self._mean = mean
        self._cov = cov

    def save_to_text_file(self, path: str) -> bool:
        """Write the mean on the first line, then the three covariance rows."""
        lines = [" ".join(f"{v:.17g}" for v in self._mean.tolist())]
        lines.extend(" ".join(f"{v:.17g}" for v in row) for row in self._cov.tolist())
        try:
            with open(path, "w") as f:
                f.write("\n".join(lines) + "\n")
        except OSError:
            return False
        return True

    def __repr__(self) -> str:
        m = self._mean.tolist()
        return f"PointPDFGaussian(mean=[{m[0]:.4f}, {m[1]:.4f}, {m[2]:.4f}])"
