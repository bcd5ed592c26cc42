"""Structured-schema and text codecs for particle point distributions.

Schema layout (version 1)::

    {
        "datatype": "CPointPDFParticles",
        "version": 1,
        "N": 3,
        "particles": [{"log_w": 0.0, "x": 1.0, "y": 0.0, "z": 0.0}, ...],
    }

Decoding is keyed on "datatype": a schema carrying a different tag is
skipped (so one container can hold several distribution types), while an
unrecognized version for a matching tag is an error.
"""

from typing import Any, Dict, TYPE_CHECKING
import json

import torch
from torch import Tensor

if TYPE_CHECKING:
    from .particles import PointPDFParticles

SERIALIZATION_VERSION = 1
PARTICLES_DATATYPE = "CPointPDFParticles"


class SerializationError(ValueError):
    """Base class for schema decoding failures."""


class UnknownSerializationVersionError(SerializationError):
    """The schema version is not one this codec knows how to read."""

    def __init__(self, version: Any, datatype: str = PARTICLES_DATATYPE):
        self.version = version
        self.datatype = datatype
        super().__init__(f"Unknown serialization version {version!r} for '{datatype}'")


class SchemaError(SerializationError):
    """The schema is missing fields or holds values of the wrong kind."""


def encode_particles(pdf: "PointPDFParticles") -> Dict[str, Any]:
    """Encode a particle distribution into a version 1 schema.

    Args:
        pdf: Particle distribution to encode

    Returns:
        schema: Plain dict/list/scalar tree
    """
    points = pdf.points.tolist()
    log_weights = pdf.log_weights.tolist()
    return {
        "datatype": pdf.datatype,
        "version": SERIALIZATION_VERSION,
        "N": len(points),
        "particles": [
            {"log_w": lw, "x": p[0], "y": p[1], "z": p[2]}
            for p, lw in zip(points, log_weights)
        ],
    }


def _decode_v1(schema: Dict[str, Any]):
    try:
        n = int(schema["N"])
        entries = schema.get("particles") or []
        rows = [
            (float(e["x"]), float(e["y"]), float(e["z"]), float(e["log_w"]))
            for e in entries
        ]
    except (KeyError, TypeError, ValueError) as e:
        raise SchemaError(f"Malformed particle schema: {e!r}") from e

    if n < 0 or len(rows) != n:
        raise SchemaError(f"Schema declares N={n} but holds {len(rows)} particles")
    if n == 0:
        return torch.zeros(0, 3, dtype=torch.float32), torch.zeros(0, dtype=torch.float64)

    values = torch.tensor(rows, dtype=torch.float64)
    points = values[:, :3].to(torch.float32)
    log_weights = values[:, 3].clone()
    if not torch.isfinite(log_weights).all():
        raise SchemaError("Particle log weights must be finite")
    return points, log_weights


def decode_particles(schema: Dict[str, Any], target: "PointPDFParticles") -> bool:
    """Decode a schema into target, replacing its particles.

    Args:
        schema: Schema produced by encode_particles (or a compatible writer)
        target: Particle distribution to overwrite

    Returns:
        True if decoded, False if the datatype tag belongs to another type
        (target untouched).

    Raises:
        UnknownSerializationVersionError: matching tag, unknown version
        SchemaError: schema is not a mapping, or matching tag with a malformed payload
    """
    if not isinstance(schema, dict):
        raise SchemaError(f"Schema must be a mapping, got {type(schema).__name__}")
    if schema.get("datatype") != target.datatype:
        return False

    version = schema.get("version", 0)
    if version == 1 and not isinstance(version, bool):
        points, log_weights = _decode_v1(schema)
    else:
        raise UnknownSerializationVersionError(version, target.datatype)

    target.set_particles(points, log_weights)
    return True


def dumps(schema: Dict[str, Any], **kwargs) -> str:
    """Serialize a schema tree to a JSON string."""
    return json.dumps(schema, **kwargs)


def loads(text: str) -> Dict[str, Any]:
    """Parse a JSON string produced by dumps."""
    schema = json.loads(text)
    if not isinstance(schema, dict):
        raise SchemaError("Top-level schema value must be an object")
    return schema


def save_particles_text(points: Tensor, log_weights: Tensor, path: str) -> bool:
    """Write one "X Y Z LOG_W" line per particle, no header.

    Returns:
        False if the file could not be written
    """
    lines = [
        f"{p[0]:.9g} {p[1]:.9g} {p[2]:.9g} {lw:.17g}\n"
        for p, lw in zip(points.tolist(), log_weights.tolist())
    ]
    try:
        with open(path, "w") as f:
            f.writelines(lines)
    except OSError:
        return False
    return True
