"""Sum-of-Gaussians representation of a 3D point distribution."""

from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

import torch
from torch import Tensor

from .base import PointPDF, check_non_empty, check_point_pdf
from .gaussian import PointPDFGaussian
from .pose import Pose3D
from .utils.gaussian_ops import gaussian_log_density, gaussian_product, mahalanobis_distance
from .utils.sampling import sample_indices
from .utils.weights import normalized_weights, safe_logsumexp


@dataclass
class GaussianMode:
    """One weighted component of a sum of Gaussians."""
    mean: Tensor
    cov: Tensor
    log_weight: float = 0.0

    def __post_init__(self):
        self.mean = torch.as_tensor(self.mean, dtype=torch.float64).reshape(3).clone()
        cov = torch.as_tensor(self.cov, dtype=torch.float64).reshape(3, 3)
        self.cov = 0.5 * (cov + cov.T)
        self.log_weight = float(self.log_weight)


class PointPDFSOG(PointPDF):
    """A 3D point distribution as a weighted mixture of Gaussian modes.

    Example:
        >>> sog = PointPDFSOG([
        ...     GaussianMode(mean=[0.0, 0.0, 0.0], cov=torch.eye(3)),
        ...     GaussianMode(mean=[5.0, 0.0, 0.0], cov=torch.eye(3), log_weight=-1.0),
        ... ])
        >>> sog.size()
        2
    """

    supports_density = True

    def __init__(self, modes: Optional[List[GaussianMode]] = None):
        self.modes: List[GaussianMode] = list(modes) if modes is not None else []

    def size(self) -> int:
        return len(self.modes)

    def is_empty(self) -> bool:
        return not self.modes

    def __len__(self) -> int:
        return len(self.modes)

    def __iter__(self) -> Iterator[GaussianMode]:
        return iter(self.modes)

    def clear(self) -> None:
        self.modes = []

    def _stacked(self) -> Tuple[Tensor, Tensor, Tensor]:
        means = torch.stack([m.mean for m in self.modes])
        covs = torch.stack([m.cov for m in self.modes])
        log_weights = torch.tensor([m.log_weight for m in self.modes], dtype=torch.float64)
        return means, covs, log_weights

    def normalize_weights(self) -> float:
        """Shift log weights so that the largest is 0; returns the shift."""
        if not self.modes:
            return 0.0
        max_log_weight = max(m.log_weight for m in self.modes)
        for mode in self.modes:
            mode.log_weight -= max_log_weight
        return max_log_weight

    def get_covariance_and_mean(self) -> Tuple[Tensor, Tensor]:
        """Moments of the mixture.

        cov = sum_i w_i (C_i + (m_i - m)(m_i - m)^T)
        """
        if not self.modes:
            return torch.zeros(3, 3, dtype=torch.float64), torch.zeros(3, dtype=torch.float64)

        means, covs, log_weights = self._stacked()
        weights = normalized_weights(log_weights)
        mean = (weights.unsqueeze(-1) * means).sum(dim=0)
        centered = means - mean
        spread = (weights.unsqueeze(-1) * centered).T @ centered
        cov = (weights.view(-1, 1, 1) * covs).sum(dim=0) + spread
        return 0.5 * (cov + cov.T), mean

    def draw_samples(
        self,
        n_samples: int,
        generator: Optional[torch.Generator] = None,
    ) -> Tensor:
        if not self.modes:
            raise ValueError("Cannot sample from an empty sum of Gaussians")
        _, _, log_weights = self._stacked()
        indices = sample_indices(log_weights, n_samples, generator=generator)
        samples = torch.zeros(n_samples, 3, dtype=torch.float64)
        for k in torch.unique(indices).tolist():
            mode = self.modes[k]
            selected = indices == k
            n_k = int(selected.sum())
            samples[selected] = PointPDFGaussian(mode.mean, mode.cov).draw_samples(
                n_k, generator=generator
            )
        return samples

    def log_density(self, points: Tensor) -> Tensor:
        if not self.modes:
            raise ValueError("Cannot evaluate the density of an empty sum of Gaussians")
        points = torch.as_tensor(points).reshape(-1, 3)
        _, _, log_weights = self._stacked()
        log_w = torch.log(normalized_weights(log_weights))
        per_mode = torch.stack(
            [gaussian_log_density(points, m.mean, m.cov) for m in self.modes]
        )  # [K, M]
        return safe_logsumexp(log_w.unsqueeze(-1) + per_mode, dim=0)

    def copy_from(self, other: PointPDF, **kwargs) -> None:
        """Deep copy another SOG; any other distribution becomes a single mode."""
        check_point_pdf(other, "other")
        check_non_empty(other, "other")
        if isinstance(other, PointPDFSOG):
            self.modes = [
                GaussianMode(m.mean, m.cov, m.log_weight) for m in other.modes
            ]
            return
        cov, mean = other.get_covariance_and_mean()
        self.modes = [GaussianMode(mean, cov, 0.0)]

    def change_coordinates_reference(self, new_reference_base: Pose3D) -> None:
        rot = new_reference_base.rotation
        for mode in self.modes:
            mode.mean = new_reference_base.apply(mode.mean)
            cov = rot @ mode.cov @ rot.T
            mode.cov = 0.5 * (cov + cov.T)

    @staticmethod
    def _as_modes(pdf: PointPDF) -> List[GaussianMode]:
        if isinstance(pdf, PointPDFSOG):
            return [GaussianMode(m.mean, m.cov, m.log_weight) for m in pdf.modes]
        cov, mean = pdf.get_covariance_and_mean()
        return [GaussianMode(mean, cov, 0.0)]

    def bayesian_fusion(
        self,
        p1: PointPDF,
        p2: PointPDF,
        min_mahalanobis_dist_to_drop: float = 0.0,
        **kwargs,
    ) -> None:
        """Pairwise products of the modes of p1 and p2.

        The product of modes i and j has weight w_i w_j N(m_i; m_j, C_i + C_j).
        When min_mahalanobis_dist_to_drop > 0, pairs whose means are farther
        apart than that (under C_i + C_j) are dropped, since they would only
        contribute negligible modes. If every pair is that far apart, the
        closest pair is kept.
        """
        check_point_pdf(p1, "p1")
        check_point_pdf(p2, "p2")
        check_non_empty(p1, "p1")
        check_non_empty(p2, "p2")
        modes1 = self._as_modes(p1)
        modes2 = self._as_modes(p2)

        fused: List[GaussianMode] = []
        closest: Optional[Tuple[float, GaussianMode]] = None
        for a in modes1:
            for b in modes2:
                mean, cov, log_scale = gaussian_product(a.mean, a.cov, b.mean, b.cov)
                mode = GaussianMode(mean, cov, a.log_weight + b.log_weight + float(log_scale))
                if min_mahalanobis_dist_to_drop > 0:
                    dist = float(mahalanobis_distance(a.mean, b.mean, a.cov + b.cov))
                    if closest is None or dist < closest[0]:
                        closest = (dist, mode)
                    if dist > min_mahalanobis_dist_to_drop:
                        continue
                fused.append(mode)

        if not fused and closest is not None:
            fused.append(closest[1])

        self.modes = fused
        self.normalize_weights()

    def save_to_text_file(self, path: str) -> bool:
        """One line per mode: LOG_W X Y Z C00 C01 C02 C10 ... C22."""
        try:
            with open(path, "w") as f:
                for mode in self.modes:
                    values = [mode.log_weight] + mode.mean.tolist() + mode.cov.reshape(-1).tolist()
                    f.write(" ".join(f"{v:.17g}" for v in values) + "\n")
        except OSError:
            return False
        return True

    def __repr__(self) -> str:
        return f"PointPDFSOG(n_modes={len(self.modes)})"
