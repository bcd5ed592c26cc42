#!/usr/bin/env python3
"""Fuse two sensors' observations of a beacon into a particle distribution.

Each sensor reports a Gaussian estimate of the beacon in its own frame.
The estimates are converted to particles, moved into the world frame and
fused; the result is written as a JSON schema, a text dump and a plot.

Usage:
    python examples/beacon/fuse_beacon.py \
        --config examples/beacon/config.yaml \
        --output_dir examples/beacon/output
"""

import argparse
from pathlib import Path

import torch
import yaml

from pointpdf.poses import (
    PointPDFGaussian,
    PointPDFParticles,
    Pose3D,
    create_fusion_strategy,
    dumps,
)


def load_config(config_path: str) -> dict:
    """Load experiment configuration from YAML file."""
    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)
    return config


def sensor_pose(sensor_cfg: dict) -> Pose3D:
    pose = sensor_cfg.get('pose', {})
    return Pose3D.from_xyz_ypr(
        pose.get('x', 0.0), pose.get('y', 0.0), pose.get('z', 0.0),
        yaw=pose.get('yaw', 0.0), pitch=pose.get('pitch', 0.0), roll=pose.get('roll', 0.0),
    )


def observe(beacon: torch.Tensor, pose: Pose3D, noise_std: float,
            generator: torch.Generator) -> PointPDFGaussian:
    """Noisy Gaussian observation of the beacon, expressed in the sensor frame."""
    local = pose.inverse().apply(beacon)
    noise = torch.randn(3, dtype=torch.float64, generator=generator) * noise_std
    return PointPDFGaussian(mean=local + noise, cov=(noise_std ** 2) * torch.eye(3))


def main():
    parser = argparse.ArgumentParser(
        description="Beacon localization by fusing particle distributions",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--config", type=str, default="examples/beacon/config.yaml",
                        help="Path to experiment config YAML file")
    parser.add_argument("--output_dir", type=str, default="examples/beacon/output",
                        help="Output directory for the fused distribution")
    parser.add_argument("--n_particles", type=int, default=None,
                        help="Override number of particles from config")
    parser.add_argument("--method", type=str, default=None,
                        choices=["importance", "gaussian_product"],
                        help="Override fusion method from config")
    parser.add_argument("--no_plot", action="store_true",
                        help="Skip the matplotlib figure")
    args = parser.parse_args()

    config = load_config(args.config)
    fusion_cfg = config.get('fusion', {})
    output_cfg = config.get('output', {})
    n_particles = args.n_particles or fusion_cfg.get('n_particles', 1000)
    method = args.method or fusion_cfg.get('method', 'importance')

    generator = torch.Generator().manual_seed(config.get('experiment', {}).get('seed', 0))
    beacon = torch.tensor(config['beacon'], dtype=torch.float64)

    print("=" * 60)
    print("Beacon fusion")
    print("=" * 60)
    print(f"  True beacon: {beacon.tolist()}")

    # Every sensor's observation as particles in the world frame
    world_estimates = []
    for sensor_cfg in config['sensors']:
        pose = sensor_pose(sensor_cfg)
        observation = observe(beacon, pose, sensor_cfg.get('noise_std', 0.5), generator)
        particles = PointPDFParticles(0)
        particles.copy_from(observation, n_particles=n_particles, generator=generator)
        particles.change_coordinates_reference(pose)
        world_estimates.append(particles)
        print(f"  {sensor_cfg['name']}: mean={particles.get_mean().numpy().round(3).tolist()}")

    strategy = create_fusion_strategy(method, n_samples=n_particles)
    fused = world_estimates[0]
    for estimate in world_estimates[1:]:
        result = PointPDFParticles(0)
        result.bayesian_fusion(
            fused,
            estimate,
            min_mahalanobis_dist_to_drop=fusion_cfg.get('min_mahalanobis_dist_to_drop', 0.0),
            generator=generator,
            strategy=strategy,
        )
        fused = result

    cov, mean = fused.get_covariance_and_mean()
    error = torch.linalg.norm(mean - beacon).item()
    print(f"\nFused ({strategy}):")
    print(f"  particles: {fused.size()}  ESS: {fused.ess():.1f}")
    print(f"  mean: {mean.numpy().round(3).tolist()}  error: {error:.3f}")
    print(f"  std:  {torch.sqrt(torch.diagonal(cov)).numpy().round(3).tolist()}")
    print(f"  kurtosis: {fused.compute_kurtosis():.2f}")

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    schema_path = output_dir / output_cfg.get('schema', 'fused.json')
    schema_path.write_text(dumps(fused.serialize_to(), indent=2))
    text_path = output_dir / output_cfg.get('text', 'fused.txt')
    if not fused.save_to_text_file(str(text_path)):
        print(f"Warning: could not write {text_path}")
    print(f"\nSaved: {schema_path}, {text_path}")

    if not args.no_plot:
        from pointpdf.utils.visualization import plot_particles

        fig, _ = plot_particles(
            fused,
            theme=output_cfg.get('theme', 'default'),
            title=f"Fused beacon estimate ({method})",
        )
        plot_path = output_dir / output_cfg.get('plot', 'fused.png')
        fig.savefig(plot_path, dpi=150, bbox_inches='tight')
        print(f"Saved: {plot_path}")


if __name__ == "__main__":
    main()
