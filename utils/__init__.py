"""Auxiliary tooling (visualization)."""
