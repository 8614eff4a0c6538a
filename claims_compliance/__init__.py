"""Claims compliance validation engine."""

from .rules import ValidationEngine, validate_claim
from .schemas import parse_claim

__all__ = ["ValidationEngine", "validate_claim", "parse_claim"]
