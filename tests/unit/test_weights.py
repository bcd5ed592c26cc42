"""Unit tests for weight operations (poses/utils/weights.py).

Key Invariants Tested:
- W1: normalized weights sum to 1
- W2: shifting every log weight by a constant changes nothing
- W3: ESS in [1, N]
- W4: covariance is exactly symmetric
"""

import math
import warnings

import pytest
import torch

from pointpdf.poses.utils.weights import (
    safe_logsumexp,
    normalized_weights,
    normalize_log_weights,
    init_uniform_log_weights,
    compute_ess,
    compute_entropy,
    weighted_mean,
    weighted_covariance,
    weighted_kurtosis,
)


# =============================================================================
# Tests for safe_logsumexp
# =============================================================================

class TestSafeLogsumexp:
    """Tests for the safe_logsumexp function."""

    def test_equivalent_to_torch_logsumexp(self):
        """Should match torch.logsumexp for well-behaved inputs."""
        log_weights = torch.randn(4, 16, dtype=torch.float64)
        result = safe_logsumexp(log_weights, dim=-1)
        expected = torch.logsumexp(log_weights, dim=-1)
        assert torch.allclose(result, expected)

    def test_all_negative_infinity_warns_and_returns_zero(self):
        """All -inf input triggers a warning instead of propagating -inf."""
        log_weights = torch.full((3,), -math.inf, dtype=torch.float64)
        with pytest.warns(RuntimeWarning):
            result = safe_logsumexp(log_weights)
        assert result.item() == 0.0

    def test_keepdim(self):
        log_weights = torch.randn(4, 16)
        assert safe_logsumexp(log_weights, keepdim=True).shape == (4, 1)
        assert safe_logsumexp(log_weights, keepdim=False).shape == (4,)


# =============================================================================
# Tests for normalized_weights
# =============================================================================

class TestNormalizedWeights:
    """Tests for linear weight normalization."""

    def test_sums_to_one(self, random_log_weights):
        """Invariant W1."""
        weights = normalized_weights(random_log_weights)
        assert torch.isclose(weights.sum(), torch.tensor(1.0, dtype=torch.float64))

    def test_shift_invariance(self, random_log_weights):
        """Invariant W2."""
        a = normalized_weights(random_log_weights)
        b = normalized_weights(random_log_weights + 1234.5)
        assert torch.allclose(a, b, atol=1e-12)

    def test_huge_log_weights_do_not_overflow(self):
        log_weights = torch.tensor([1e6, 1e6 - 1.0, 1e6 - 2.0], dtype=torch.float64)
        weights = normalized_weights(log_weights)
        assert torch.isfinite(weights).all()
        assert torch.isclose(weights.sum(), torch.tensor(1.0, dtype=torch.float64))

    def test_tiny_log_weights_do_not_underflow(self):
        log_weights = torch.tensor([-1e6, -1e6, -1e6], dtype=torch.float64)
        weights = normalized_weights(log_weights)
        assert torch.allclose(weights, torch.full((3,), 1.0 / 3.0, dtype=torch.float64))

    def test_empty(self):
        assert normalized_weights(torch.zeros(0)).numel() == 0

    def test_all_negative_infinity_falls_back_to_uniform(self):
        log_weights = torch.full((4,), -math.inf, dtype=torch.float64)
        with pytest.warns(RuntimeWarning):
            weights = normalized_weights(log_weights)
        assert torch.allclose(weights, torch.full((4,), 0.25, dtype=torch.float64))

    def test_output_is_float64(self):
        weights = normalized_weights(torch.zeros(5, dtype=torch.float32))
        assert weights.dtype == torch.float64


# =============================================================================
# Tests for normalize_log_weights / init_uniform_log_weights
# =============================================================================

class TestLogWeightHelpers:

    def test_normalize_log_weights_sums_to_one(self):
        log_weights = torch.randn(4, 32, dtype=torch.float64) * 10
        normalized = normalize_log_weights(log_weights)
        sums = torch.exp(normalized).sum(dim=-1)
        assert torch.allclose(sums, torch.ones(4, dtype=torch.float64))

    def test_init_uniform_log_weights_are_zero(self):
        log_weights = init_uniform_log_weights(5)
        assert log_weights.shape == (5,)
        assert log_weights.dtype == torch.float64
        assert torch.all(log_weights == 0)


# =============================================================================
# Tests for compute_ess / compute_entropy
# =============================================================================

class TestComputeESS:

    def test_uniform_weights_give_n(self):
        """Uniform weights give ESS = N."""
        ess = compute_ess(torch.zeros(20, dtype=torch.float64))
        assert math.isclose(ess.item(), 20.0, rel_tol=1e-9)

    def test_peaked_weights_give_one(self):
        log_weights = torch.full((10,), -1000.0, dtype=torch.float64)
        log_weights[3] = 0.0
        assert math.isclose(compute_ess(log_weights).item(), 1.0, rel_tol=1e-9)

    def test_in_valid_range(self, random_log_weights):
        """Invariant W3."""
        ess = compute_ess(random_log_weights).item()
        assert 1.0 - 1e-9 <= ess <= random_log_weights.numel() + 1e-9

    def test_entropy_uniform_is_log_n(self):
        entropy = compute_entropy(torch.zeros(8, dtype=torch.float64))
        assert math.isclose(entropy.item(), math.log(8), rel_tol=1e-9)


# =============================================================================
# Tests for weighted statistics
# =============================================================================

class TestWeightedMean:

    def test_uniform_weights_match_plain_mean(self, random_points):
        log_weights = torch.zeros(random_points.shape[0], dtype=torch.float64)
        mean = weighted_mean(random_points, log_weights)
        assert torch.allclose(mean, random_points.to(torch.float64).mean(dim=0))

    def test_dominant_weight_selects_point(self):
        values = torch.tensor([[1.0, 2.0, 3.0], [10.0, 20.0, 30.0]])
        log_weights = torch.tensor([0.0, -800.0], dtype=torch.float64)
        mean = weighted_mean(values, log_weights)
        assert torch.allclose(mean, torch.tensor([1.0, 2.0, 3.0], dtype=torch.float64))

    def test_empty_is_zero(self):
        mean = weighted_mean(torch.zeros(0, 3), torch.zeros(0))
        assert torch.equal(mean, torch.zeros(3, dtype=torch.float64))


class TestWeightedCovariance:

    def test_uniform_weights_give_population_covariance(self, random_points):
        """Uniform weights give the population (1/N) covariance."""
        n = random_points.shape[0]
        values = random_points.to(torch.float64)
        cov, mean = weighted_covariance(random_points, torch.zeros(n, dtype=torch.float64))
        centered = values - values.mean(dim=0)
        expected = centered.T @ centered / n
        assert torch.allclose(cov, expected, atol=1e-10)
        assert torch.allclose(mean, values.mean(dim=0))

    def test_exactly_symmetric(self, random_points, random_log_weights):
        """Invariant W4."""
        cov, _ = weighted_covariance(random_points, random_log_weights)
        assert torch.equal(cov, cov.T)

    def test_coincident_points_are_exact(self):
        """Identical points give the point itself and an exactly zero covariance."""
        values = torch.tensor([[1e4 + 0.1, -3.7, 2.2]]).repeat(257, 1)
        log_weights = torch.linspace(-5.0, 0.0, 257, dtype=torch.float64)
        cov, mean = weighted_covariance(values, log_weights)
        assert torch.equal(cov, torch.zeros(3, 3, dtype=torch.float64))
        assert torch.equal(mean, values[0].to(torch.float64))
        assert torch.equal(weighted_kurtosis(values, log_weights), torch.zeros(3, dtype=torch.float64))

    def test_empty_is_zero(self):
        cov, mean = weighted_covariance(torch.zeros(0, 3), torch.zeros(0))
        assert torch.equal(cov, torch.zeros(3, 3, dtype=torch.float64))
        assert torch.equal(mean, torch.zeros(3, dtype=torch.float64))


class TestWeightedKurtosis:

    def test_two_point_distribution(self):
        """Symmetric two-point distribution has kurtosis 1 on its axis."""
        values = torch.tensor([[1.0, 0.0, 0.0], [-1.0, 0.0, 0.0]])
        kurt = weighted_kurtosis(values, torch.zeros(2, dtype=torch.float64))
        assert math.isclose(kurt[0].item(), 1.0, rel_tol=1e-12)

    def test_degenerate_axes_report_zero(self):
        values = torch.tensor([[1.0, 5.0, 0.0], [-1.0, 5.0, 0.0]])
        kurt = weighted_kurtosis(values, torch.zeros(2, dtype=torch.float64))
        assert kurt[1].item() == 0.0
        assert kurt[2].item() == 0.0

    def test_gaussian_samples_near_three(self, generator):
        values = torch.randn(20000, 3, generator=generator)
        kurt = weighted_kurtosis(values, torch.zeros(20000, dtype=torch.float64))
        assert torch.allclose(kurt, torch.full((3,), 3.0, dtype=torch.float64), atol=0.2)

    def test_no_warning_for_regular_input(self, random_points, random_log_weights):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            weighted_kurtosis(random_points, random_log_weights)
