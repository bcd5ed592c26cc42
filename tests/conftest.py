"""Shared fixtures for pointpdf test suite."""

import pytest
import torch
from torch import Tensor


# =============================================================================
# Random Source Fixtures
# =============================================================================

@pytest.fixture
def generator() -> torch.Generator:
    """Seeded random source for reproducible draws."""
    return torch.Generator().manual_seed(1234)


# =============================================================================
# Dimension Fixtures (Parameterized)
# =============================================================================

@pytest.fixture(params=[0, 1, 7, 64])
def n_particles(request) -> int:
    """Test with various particle counts, including the empty ensemble."""
    return request.param


@pytest.fixture
def n_particles_fixed() -> int:
    """Fixed particle count for simpler tests."""
    return 200


# =============================================================================
# Tensor Fixtures
# =============================================================================

@pytest.fixture
def random_points(n_particles_fixed: int, generator: torch.Generator) -> Tensor:
    """Random particle points [N, 3]."""
    return torch.randn(n_particles_fixed, 3, generator=generator)


@pytest.fixture
def random_log_weights(n_particles_fixed: int, generator: torch.Generator) -> Tensor:
    """Random, unnormalized log weights [N]."""
    return torch.randn(n_particles_fixed, generator=generator, dtype=torch.float64) * 3.0


# =============================================================================
# Distribution Fixtures
# =============================================================================

@pytest.fixture
def three_particles():
    """The three-particle ensemble (1,0,0), (-1,0,0), (0,1,0) with log_w = 0."""
    from pointpdf.poses import PointPDFParticles
    pdf = PointPDFParticles()
    pdf.set_size(3, [0.0, 0.0, 0.0])
    pdf.set_point(0, [1.0, 0.0, 0.0])
    pdf.set_point(1, [-1.0, 0.0, 0.0])
    pdf.set_point(2, [0.0, 1.0, 0.0])
    return pdf


@pytest.fixture
def random_particles(random_points: Tensor, random_log_weights: Tensor):
    """Particle distribution with random points and weights."""
    from pointpdf.poses import PointPDFParticles
    pdf = PointPDFParticles(0)
    pdf.set_particles(random_points, random_log_weights)
    return pdf


@pytest.fixture
def unit_gaussian():
    """Standard normal in 3D."""
    from pointpdf.poses import PointPDFGaussian
    return PointPDFGaussian(mean=[0.0, 0.0, 0.0], cov=torch.eye(3))


@pytest.fixture
def shifted_gaussian():
    """Gaussian centered at (2, 0, 0) with covariance I."""
    from pointpdf.poses import PointPDFGaussian
    return PointPDFGaussian(mean=[2.0, 0.0, 0.0], cov=torch.eye(3))


# =============================================================================
# Pose Fixtures
# =============================================================================

@pytest.fixture
def pose_a():
    from pointpdf.poses import Pose3D
    return Pose3D.from_xyz_ypr(1.0, -2.0, 0.5, yaw=0.3, pitch=-0.2, roll=0.1)


@pytest.fixture
def pose_b():
    from pointpdf.poses import Pose3D
    return Pose3D.from_xyz_ypr(-0.5, 0.25, 3.0, yaw=-1.1, pitch=0.4, roll=0.7)


# =============================================================================
# Tolerance Fixtures
# =============================================================================

@pytest.fixture
def tolerance() -> dict:
    """Default numerical tolerances for floating point comparisons."""
    return {"atol": 1e-5, "rtol": 1e-4}


@pytest.fixture
def loose_tolerance() -> dict:
    """Looser tolerances for stochastic operations."""
    return {"atol": 5e-2, "rtol": 5e-2}


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "hypothesis: marks property-based tests")
