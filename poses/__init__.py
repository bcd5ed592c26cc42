"""Probability distributions over a 3D point.

Three interchangeable representations share the PointPDF interface:
- PointPDFGaussian: a single Gaussian
- PointPDFSOG: a weighted sum of Gaussians
- PointPDFParticles: a weighted set of samples

Example:
    >>> from pointpdf.poses import PointPDFParticles, PointPDFGaussian, Pose3D
    >>>
    >>> beacon = PointPDFGaussian(mean=[2.0, 0.0, 0.0], cov=0.5 * torch.eye(3))
    >>> prior = PointPDFParticles()
    >>> prior.copy_from(beacon, n_particles=500)
    >>> prior.change_coordinates_reference(Pose3D.from_xyz_ypr(1.0, 0.0, 0.0))
    >>> cov, mean = prior.get_covariance_and_mean()
"""

from .base import (
    DEFAULT_CONVERSION_SAMPLES,
    PointPDF,
)
from .pose import Pose3D
from .gaussian import PointPDFGaussian
from .sog import GaussianMode, PointPDFSOG
from .particles import PointPDFParticles
from .fusion import (
    FusionMethod,
    FusionStrategy,
    ImportanceFusion,
    GaussianProductFusion,
    IncompatibleDistributionError,
    create_fusion_strategy,
    fuse_to_particles,
    prune_by_mahalanobis,
)
from .serialization import (
    PARTICLES_DATATYPE,
    SERIALIZATION_VERSION,
    SerializationError,
    SchemaError,
    UnknownSerializationVersionError,
    encode_particles,
    decode_particles,
    dumps,
    loads,
)

__all__ = [
    # Interface
    "DEFAULT_CONVERSION_SAMPLES",
    "PointPDF",
    "Pose3D",
    # Representations
    "PointPDFGaussian",
    "GaussianMode",
    "PointPDFSOG",
    "PointPDFParticles",
    # Fusion
    "FusionMethod",
    "FusionStrategy",
    "ImportanceFusion",
    "GaussianProductFusion",
    "IncompatibleDistributionError",
    "create_fusion_strategy",
    "fuse_to_particles",
    "prune_by_mahalanobis",
    # Serialization
    "PARTICLES_DATATYPE",
    "SERIALIZATION_VERSION",
    "SerializationError",
    "SchemaError",
    "UnknownSerializationVersionError",
    "encode_particles",
    "decode_particles",
    "dumps",
    "loads",
]
