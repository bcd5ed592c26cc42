"""Unit tests for the sum-of-Gaussians distribution (poses/sog.py)."""

import math

import pytest
import torch

from pointpdf.poses import GaussianMode, PointPDFGaussian, PointPDFParticles, PointPDFSOG


@pytest.fixture
def bimodal():
    return PointPDFSOG([
        GaussianMode(mean=[-2.0, 0.0, 0.0], cov=0.25 * torch.eye(3)),
        GaussianMode(mean=[2.0, 0.0, 0.0], cov=0.25 * torch.eye(3)),
    ])


class TestPointPDFSOG:

    def test_size_and_iteration(self, bimodal):
        assert bimodal.size() == 2
        assert len(bimodal) == 2
        assert all(isinstance(mode, GaussianMode) for mode in bimodal)

    def test_mode_converts_inputs(self):
        mode = GaussianMode(mean=[1, 2, 3], cov=torch.eye(3), log_weight=-1)
        assert mode.mean.dtype == torch.float64
        assert isinstance(mode.log_weight, float)

    def test_mixture_moments(self, bimodal):
        cov, mean = bimodal.get_covariance_and_mean()
        assert torch.allclose(mean, torch.zeros(3, dtype=torch.float64))
        expected = torch.diag(torch.tensor([4.25, 0.25, 0.25], dtype=torch.float64))
        assert torch.allclose(cov, expected)

    def test_empty_moments_are_zero(self):
        cov, mean = PointPDFSOG().get_covariance_and_mean()
        assert torch.equal(mean, torch.zeros(3, dtype=torch.float64))
        assert torch.equal(cov, torch.zeros(3, 3, dtype=torch.float64))

    def test_normalize_weights(self):
        sog = PointPDFSOG([
            GaussianMode(mean=[0.0, 0.0, 0.0], cov=torch.eye(3), log_weight=3.0),
            GaussianMode(mean=[1.0, 0.0, 0.0], cov=torch.eye(3), log_weight=1.0),
        ])
        assert sog.normalize_weights() == 3.0
        assert [m.log_weight for m in sog] == [0.0, -2.0]

    def test_draw_samples_cover_both_modes(self, bimodal, generator):
        samples = bimodal.draw_samples(2000, generator=generator)
        assert samples.shape == (2000, 3)
        left = (samples[:, 0] < 0).sum().item()
        assert 800 < left < 1200

    def test_draw_from_empty_raises(self):
        with pytest.raises(ValueError):
            PointPDFSOG().draw_samples(1)

    def test_log_density_single_mode_matches_gaussian(self):
        sog = PointPDFSOG([GaussianMode(mean=[1.0, 0.0, 0.0], cov=torch.eye(3), log_weight=5.0)])
        gaussian = PointPDFGaussian(mean=[1.0, 0.0, 0.0], cov=torch.eye(3))
        query = torch.tensor([[0.0, 0.0, 0.0], [1.0, 1.0, 1.0]])
        assert torch.allclose(sog.log_density(query), gaussian.log_density(query))

    def test_copy_from_sog_is_deep(self, bimodal):
        copy = PointPDFSOG()
        copy.copy_from(bimodal)
        bimodal.modes[0].log_weight = -10.0
        assert copy.modes[0].log_weight == 0.0

    def test_copy_from_gaussian_gives_single_mode(self, shifted_gaussian):
        sog = PointPDFSOG()
        sog.copy_from(shifted_gaussian)
        assert sog.size() == 1
        assert torch.allclose(sog.get_mean(), shifted_gaussian.mean)

    def test_change_coordinates_reference(self, bimodal, pose_a):
        expected_mean = pose_a.apply(bimodal.get_mean())
        bimodal.change_coordinates_reference(pose_a)
        assert torch.allclose(bimodal.get_mean(), expected_mean)

    def test_bayesian_fusion_of_single_modes(self, unit_gaussian, shifted_gaussian):
        sog = PointPDFSOG()
        sog.bayesian_fusion(unit_gaussian, shifted_gaussian)
        assert sog.size() == 1
        assert torch.allclose(sog.get_mean(), torch.tensor([1.0, 0.0, 0.0], dtype=torch.float64))
        assert sog.modes[0].log_weight == 0.0

    def test_bayesian_fusion_picks_consistent_mode(self, bimodal):
        """Fusing with a measurement near +2 favours the right-hand mode."""
        measurement = PointPDFGaussian(mean=[2.0, 0.0, 0.0], cov=0.25 * torch.eye(3))
        fused = PointPDFSOG()
        fused.bayesian_fusion(bimodal, measurement)
        assert fused.size() == 2
        assert fused.get_mean()[0].item() > 1.9

    def test_bayesian_fusion_drops_distant_pairs(self, bimodal):
        measurement = PointPDFGaussian(mean=[2.0, 0.0, 0.0], cov=0.25 * torch.eye(3))
        fused = PointPDFSOG()
        fused.bayesian_fusion(bimodal, measurement, min_mahalanobis_dist_to_drop=3.0)
        assert fused.size() == 1
        assert torch.allclose(fused.get_mean(), torch.tensor([2.0, 0.0, 0.0], dtype=torch.float64))

    def test_bayesian_fusion_keeps_closest_pair_when_all_far(self, bimodal):
        measurement = PointPDFGaussian(mean=[40.0, 0.0, 0.0], cov=0.25 * torch.eye(3))
        fused = PointPDFSOG()
        fused.bayesian_fusion(bimodal, measurement, min_mahalanobis_dist_to_drop=1.0)
        assert fused.size() == 1
        assert fused.get_mean()[0].item() > 2.0

    def test_bayesian_fusion_empty_raises(self, unit_gaussian):
        with pytest.raises(ValueError):
            PointPDFSOG().bayesian_fusion(PointPDFSOG(), unit_gaussian)

    def test_bayesian_fusion_empty_particles_raises(self, bimodal):
        with pytest.raises(ValueError):
            PointPDFSOG().bayesian_fusion(bimodal, PointPDFParticles(0))

    def test_copy_from_empty_particles_raises(self, bimodal):
        with pytest.raises(ValueError):
            bimodal.copy_from(PointPDFParticles(0))
        assert bimodal.size() == 2

    def test_save_to_text_file(self, bimodal, tmp_path):
        path = tmp_path / "sog.txt"
        assert bimodal.save_to_text_file(str(path))
        lines = path.read_text().splitlines()
        assert len(lines) == 2
        values = [float(v) for v in lines[1].split()]
        assert len(values) == 13
        assert values[:4] == [0.0, 2.0, 0.0, 0.0]
        assert math.isclose(values[4], 0.25)
