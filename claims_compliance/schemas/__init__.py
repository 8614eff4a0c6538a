"""Pydantic schemas for claim payloads and rule catalog files."""

from .catalog import RuleCatalogSchema, ThresholdSchema
from .claims import ClaimSnapshotSchema, parse_claim

__all__ = ["ClaimSnapshotSchema", "RuleCatalogSchema", "ThresholdSchema", "parse_claim"]
