"""Validator registry for the compliance categories."""

from __future__ import annotations

from collections.abc import Callable, Iterable

from .models import CategoryResult, ComplianceCategory, ValidationContext

CategoryValidator = Callable[[ValidationContext], CategoryResult]


class ValidatorRegistry:
    def __init__(self) -> None:
        self._validators: dict[ComplianceCategory, CategoryValidator] = {}

    def register(self, category: ComplianceCategory, validator: CategoryValidator) -> None:
        category = ComplianceCategory(category)
        if category not in self._validators:
            self._validators[category] = validator

    def extend(self, validators: Iterable[tuple[ComplianceCategory, CategoryValidator]]) -> None:
        for category, validator in validators:
            self.register(category, validator)

    def active_validators(self) -> tuple[tuple[ComplianceCategory, CategoryValidator], ...]:
        return tuple(self._validators.items())

    def __len__(self) -> int:
        return len(self._validators)
