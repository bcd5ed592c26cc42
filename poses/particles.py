"""Particle representation of a 3D point distribution.

The ensemble is a pair of tensors owned by the distribution:
- points: [N, 3] float32
- log_weights: [N] float64, natural log of unnormalized importance weights

Statistics are recomputed on every call from weights normalized after
subtracting the maximum log weight.
"""

from typing import Any, Dict, Iterator, Optional, Tuple, Union
import math

import torch
from torch import Tensor

from .base import (
    DEFAULT_CONVERSION_SAMPLES,
    PointLike,
    PointPDF,
    as_point,
    check_point_pdf,
)
from .fusion import FusionMethod, FusionStrategy, fuse_to_particles
from .pose import Pose3D
from .serialization import (
    PARTICLES_DATATYPE,
    decode_particles,
    encode_particles,
    save_particles_text,
)
from .utils.gaussian_ops import stable_cholesky
from .utils.monitoring import check_numerical_health, compute_particle_diversity
from .utils.sampling import sample_index, sample_indices
from .utils.weights import (
    compute_ess,
    init_uniform_log_weights,
    normalized_weights,
    safe_logsumexp,
    weighted_covariance,
    weighted_kurtosis,
    weighted_mean,
)

# Upper bound on query-particle distances held at once by log_density.
KDE_CHUNK_ELEMENTS = 1 << 22


class PointPDFParticles(PointPDF):
    """A probability distribution of a 3D point as weighted samples.

    Example:
        >>> pdf = PointPDFParticles(3)
        >>> pdf.set_point(0, [1.0, 0.0, 0.0])
        >>> pdf.set_point(1, [-1.0, 0.0, 0.0])
        >>> pdf.set_point(2, [0.0, 1.0, 0.0])
        >>> mean = pdf.get_mean()  # ~(0, 0.333, 0)
    """

    datatype = PARTICLES_DATATYPE
    supports_density = True

    def __init__(
        self,
        n_particles: int = 1,
        default_value: PointLike = (0.0, 0.0, 0.0),
    ):
        """Initialize ensemble.

        Args:
            n_particles: Number of particles
            default_value: Initial point for every particle
        """
        self.set_size(n_particles, default_value)

    # ------------------------------------------------------------------
    # Ensemble store
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Remove all particles."""
        self._points = torch.zeros(0, 3, dtype=torch.float32)
        self._log_weights = torch.zeros(0, dtype=torch.float64)

    def set_size(
        self,
        n_particles: int,
        default_value: PointLike = (0.0, 0.0, 0.0),
    ) -> None:
        """Discard all particles and create n_particles copies of default_value.

        Every new particle has log weight 0 (uniform weights).
        """
        if n_particles < 0:
            raise ValueError(f"n_particles must be non-negative, got {n_particles}")
        point = as_point(default_value)
        self._points = point.unsqueeze(0).repeat(n_particles, 1)
        self._log_weights = init_uniform_log_weights(n_particles)

    def size(self) -> int:
        return self._points.shape[0]

    def __len__(self) -> int:
        return self._points.shape[0]

    def is_empty(self) -> bool:
        return self._points.shape[0] == 0

    def __iter__(self) -> Iterator[Tuple[Tensor, float]]:
        for point, log_weight in zip(self._points.clone(), self._log_weights.tolist()):
            yield point, log_weight

    @property
    def points(self) -> Tensor:
        """Copy of the particle points [N, 3]."""
        return self._points.clone()

    @property
    def log_weights(self) -> Tensor:
        """Copy of the particle log weights [N]."""
        return self._log_weights.clone()

    def set_particles(
        self,
        points: Tensor,
        log_weights: Optional[Tensor] = None,
    ) -> None:
        """Replace the whole ensemble.

        Args:
            points: [N, 3]
            log_weights: [N] finite values (zeros if None)
        """
        points = torch.as_tensor(points, dtype=torch.float32)
        if points.dim() != 2 or points.shape[1] != 3:
            raise ValueError(f"points must have shape [N, 3], got {tuple(points.shape)}")
        if log_weights is None:
            log_weights = init_uniform_log_weights(points.shape[0])
        log_weights = torch.as_tensor(log_weights, dtype=torch.float64).reshape(-1)
        if log_weights.shape[0] != points.shape[0]:
            raise ValueError(
                f"Got {points.shape[0]} points but {log_weights.shape[0]} log weights"
            )
        if not torch.isfinite(log_weights).all():
            raise ValueError("log weights must be finite")

        self._points = points.clone()
        self._log_weights = log_weights.clone()

    def get_point(self, index: int) -> Tensor:
        return self._points[index].clone()

    def set_point(self, index: int, value: PointLike) -> None:
        self._points[index] = as_point(value)

    def get_weight(self, index: int) -> float:
        """Log weight of particle index."""
        return float(self._log_weights[index])

    def set_weight(self, index: int, log_weight: float) -> None:
        if not math.isfinite(log_weight):
            raise ValueError(f"log weight must be finite, got {log_weight}")
        self._log_weights[index] = log_weight

    def normalize_weights(self) -> float:
        """Shift log weights so that the largest is 0.

        Returns:
            The maximum log weight before the shift (0 if empty)
        """
        if self.size() == 0:
            return 0.0
        max_log_weight = float(self._log_weights.max())
        self._log_weights = self._log_weights - max_log_weight
        return max_log_weight

    def ess(self) -> float:
        """Effective sample size of the weights (0 if empty)."""
        if self.size() == 0:
            return 0.0
        return float(compute_ess(self._log_weights))

    def check_health(self, thresholds: Optional[Dict[str, float]] = None) -> Dict[str, Any]:
        """Numerical health report plus spread metrics of the ensemble."""
        health = check_numerical_health(self._points, self._log_weights, thresholds)
        if health["metrics"].get("n_particles", 0) > 0 and not (
            health["metrics"]["has_nan"] or health["metrics"]["has_inf"]
        ):
            health["metrics"].update(compute_particle_diversity(self._points))
        return health

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_mean(self) -> Tensor:
        """Weighted mean [3]; the origin for an empty ensemble."""
        return weighted_mean(self._points, self._log_weights)

    def get_covariance_and_mean(self) -> Tuple[Tensor, Tensor]:
        """Weighted covariance [3, 3] and mean [3]; zeros for an empty ensemble."""
        return weighted_covariance(self._points, self._log_weights)

    def compute_kurtosis(self) -> float:
        """Largest per-axis kurtosis mu4 / sigma^4 (0 if empty or degenerate)."""
        if self.size() == 0:
            return 0.0
        return float(weighted_kurtosis(self._points, self._log_weights).max())

    # ------------------------------------------------------------------
    # Sampling and density
    # ------------------------------------------------------------------

    def draw_samples(
        self,
        n_samples: int,
        generator: Optional[torch.Generator] = None,
    ) -> Tensor:
        """Points of particles drawn with probability equal to their weight."""
        if self.size() == 0:
            raise ValueError("Cannot draw samples from an empty particle set")
        indices = sample_indices(self._log_weights, n_samples, generator=generator)
        return self._points[indices].clone()

    def draw_single_sample(self, generator: Optional[torch.Generator] = None) -> Tensor:
        """One particle's point [3], chosen with probability equal to its weight."""
        if self.size() == 0:
            raise ValueError("Cannot draw samples from an empty particle set")
        return self._points[sample_index(self._log_weights, generator=generator)].clone()

    def as_weighted_samples(
        self,
        n_samples: int = DEFAULT_CONVERSION_SAMPLES,
        generator: Optional[torch.Generator] = None,
    ) -> Tuple[Tensor, Tensor]:
        """The ensemble itself; n_samples is ignored."""
        if self.size() == 0:
            raise ValueError("Particle set is empty")
        return self.points, self.log_weights

    def kernel_bandwidth(self) -> Tensor:
        """Gaussian kernel covariance h^2 * cov with Silverman's rule.

        h = (4 / (d + 2))^(1 / (d + 4)) * n_eff^(-1 / (d + 4)), d = 3
        """
        cov, _ = self.get_covariance_and_mean()
        n_eff = max(self.ess(), 1.0)
        h = (4.0 / 5.0) ** (1.0 / 7.0) * n_eff ** (-1.0 / 7.0)
        return (h ** 2) * cov

    def log_density(self, points: Tensor, chunk_elements: int = KDE_CHUNK_ELEMENTS) -> Tensor:
        """Kernel density estimate of log p(x) at points [M, 3].

        Particles and queries are whitened by the kernel Cholesky factor once;
        queries are then processed in chunks so that at most chunk_elements
        query-particle distances are held at a time.
        """
        if self.size() == 0:
            raise ValueError("Cannot evaluate the density of an empty particle set")
        points = torch.as_tensor(points, dtype=torch.float64).reshape(-1, 3)
        L = stable_cholesky(self.kernel_bandwidth())
        log_det = 2.0 * torch.log(torch.diagonal(L)).sum()
        log_norm = -0.5 * (3 * math.log(2.0 * math.pi) + log_det)

        white_particles = torch.linalg.solve_triangular(
            L, self._points.to(torch.float64).T, upper=False
        ).T  # [N, 3]
        white_queries = torch.linalg.solve_triangular(L, points.T, upper=False).T  # [M, 3]
        log_w = torch.log(normalized_weights(self._log_weights))

        chunk = max(1, chunk_elements // self.size())
        out = []
        for start in range(0, white_queries.shape[0], chunk):
            dist = torch.cdist(
                white_queries[start:start + chunk],
                white_particles,
                compute_mode="donot_use_mm_for_euclid_dist",
            )  # [chunk, N]
            out.append(safe_logsumexp(log_w - 0.5 * dist ** 2, dim=-1))
        if not out:
            return torch.zeros(0, dtype=torch.float64)
        return log_norm + torch.cat(out)

    # ------------------------------------------------------------------
    # Transformations
    # ------------------------------------------------------------------

    def change_coordinates_reference(self, new_reference_base: Pose3D) -> None:
        """Map every particle p to R p + t; weights untouched."""
        self._points = new_reference_base.apply(self._points).to(torch.float32)

    def copy_from(
        self,
        other: PointPDF,
        n_particles: Optional[int] = None,
        generator: Optional[torch.Generator] = None,
    ) -> None:
        """Replace this ensemble by an equivalent of other.

        Particle sources are deep-copied. Any other representation is
        sampled: n_particles draws (default: the current size, or
        DEFAULT_CONVERSION_SAMPLES if empty) with uniform weights.
        """
        check_point_pdf(other, "other")
        if other is self:
            return
        if isinstance(other, PointPDFParticles):
            self.set_particles(other._points, other._log_weights)
            return

        if n_particles is None:
            n_particles = self.size() or DEFAULT_CONVERSION_SAMPLES
        points = other.draw_samples(n_particles, generator=generator)
        self.set_particles(points.to(torch.float32))

    def bayesian_fusion(
        self,
        p1: PointPDF,
        p2: PointPDF,
        min_mahalanobis_dist_to_drop: float = 0.0,
        generator: Optional[torch.Generator] = None,
        strategy: Optional[Union[str, FusionMethod, FusionStrategy]] = None,
    ) -> None:
        """Replace this ensemble by an approximation of p1 * p2.

        Args:
            p1: First distribution
            p2: Second distribution
            min_mahalanobis_dist_to_drop: If > 0, particles farther than this
                from the dominant mode are dropped (lossy)
            generator: Optional random source
            strategy: Fusion strategy (importance fusion if None)
        """
        points, log_weights = fuse_to_particles(
            p1,
            p2,
            min_mahalanobis_dist_to_drop=min_mahalanobis_dist_to_drop,
            strategy=strategy,
            generator=generator,
        )
        self._points = points
        self._log_weights = log_weights

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize_to(self) -> Dict[str, Any]:
        return encode_particles(self)

    def serialize_from(self, schema: Dict[str, Any]) -> bool:
        """Load from schema; returns False if its datatype is not ours."""
        return decode_particles(schema, self)

    def save_to_text_file(self, path: str) -> bool:
        """Save one "X Y Z LOG_W" line per particle."""
        return save_particles_text(self._points, self._log_weights, path)

    def __repr__(self) -> str:
        return f"PointPDFParticles(n_particles={self.size()})"
