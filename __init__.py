"""Particle-based probability distributions over a 3D point.

Represents an uncertain position as a weighted set of samples and provides
the statistics, re-referencing, fusion and serialization needed to use it
alongside Gaussian and sum-of-Gaussians representations.

Example:
    >>> import torch
    >>> from pointpdf.poses import PointPDFParticles, PointPDFGaussian
    >>>
    >>> a = PointPDFGaussian(mean=[0.0, 0.0, 0.0], cov=torch.eye(3))
    >>> b = PointPDFGaussian(mean=[1.0, 0.0, 0.0], cov=torch.eye(3))
    >>> fused = PointPDFParticles()
    >>> fused.bayesian_fusion(a, b, generator=torch.Generator().manual_seed(0))
    >>> mean = fused.get_mean()  # ~(0.5, 0, 0)

See Also:
    - `pointpdf.poses`: distributions, fusion and codecs
    - `pointpdf.utils.visualization`: optional matplotlib plots
"""

__version__ = "0.1.0"
__author__ = "pointpdf Authors"

# Subpackages available
__all__ = ["poses", "utils"]
