"""Shared utility functions for the claims compliance engine."""

from .claim_structurer import structure_claim_record
from .date_parser import parse_flexible_date

__all__ = ["parse_flexible_date", "structure_claim_record"]
