"""Rigid 3D pose used to re-reference point distributions.

A pose is a rotation matrix R and a translation t. Composition follows
the usual "oplus" convention: (A + B) maps a point p to A(B(p)).
"""

from typing import Optional, Sequence, Union
import math

import torch
from torch import Tensor


def _rotation_from_ypr(yaw: float, pitch: float, roll: float) -> Tensor:
    """R = Rz(yaw) @ Ry(pitch) @ Rx(roll)."""
    cy, sy = math.cos(yaw), math.sin(yaw)
    cp, sp = math.cos(pitch), math.sin(pitch)
    cr, sr = math.cos(roll), math.sin(roll)
    return torch.tensor(
        [
            [cy * cp, cy * sp * sr - sy * cr, cy * sp * cr + sy * sr],
            [sy * cp, sy * sp * sr + cy * cr, sy * sp * cr - cy * sr],
            [-sp, cp * sr, cp * cr],
        ],
        dtype=torch.float64,
    )


class Pose3D:
    """Rigid transform in 3D (rotation + translation).

    Example:
        >>> base = Pose3D.from_xyz_ypr(1.0, 0.0, 0.0, yaw=math.pi / 2)
        >>> moved = base.apply(torch.tensor([1.0, 0.0, 0.0]))  # ~(1, 1, 0)
    """

    def __init__(
        self,
        rotation: Optional[Union[Tensor, Sequence[Sequence[float]]]] = None,
        translation: Optional[Union[Tensor, Sequence[float]]] = None,
    ):
        """Initialize pose.

        Args:
            rotation: 3x3 rotation matrix (identity if None)
            translation: 3-vector translation (zero if None)
        """
        if rotation is None:
            rotation = torch.eye(3, dtype=torch.float64)
        if translation is None:
            translation = torch.zeros(3, dtype=torch.float64)

        self.rotation = torch.as_tensor(rotation, dtype=torch.float64).clone()
        self.translation = torch.as_tensor(translation, dtype=torch.float64).clone()

        if self.rotation.shape != (3, 3):
            raise ValueError(f"rotation must be 3x3, got {tuple(self.rotation.shape)}")
        if self.translation.shape != (3,):
            raise ValueError(
                f"translation must have 3 elements, got {tuple(self.translation.shape)}"
            )

    @classmethod
    def identity(cls) -> "Pose3D":
        return cls()

    @classmethod
    def from_xyz_ypr(
        cls,
        x: float = 0.0,
        y: float = 0.0,
        z: float = 0.0,
        yaw: float = 0.0,
        pitch: float = 0.0,
        roll: float = 0.0,
    ) -> "Pose3D":
        """Build a pose from a translation and yaw/pitch/roll angles (radians)."""
        return cls(_rotation_from_ypr(yaw, pitch, roll), [x, y, z])

    def compose(self, other: "Pose3D") -> "Pose3D":
        """Return self (+) other: apply other first, then self."""
        return Pose3D(
            self.rotation @ other.rotation,
            self.rotation @ other.translation + self.translation,
        )

    def __add__(self, other: "Pose3D") -> "Pose3D":
        return self.compose(other)

    def inverse(self) -> "Pose3D":
        rot_t = self.rotation.T
        return Pose3D(rot_t, -(rot_t @ self.translation))

    def apply(self, points: Tensor) -> Tensor:
        """Transform points [..., 3]: p -> R p + t (float64)."""
        points = torch.as_tensor(points, dtype=torch.float64)
        return points @ self.rotation.T + self.translation

    def __repr__(self) -> str:
        t = self.translation.tolist()
        return f"Pose3D(translation=[{t[0]:.4f}, {t[1]:.4f}, {t[2]:.4f}])"
