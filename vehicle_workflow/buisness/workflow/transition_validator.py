"""
Transition validation for vehicle moves

Checks a proposed move against the location registry without touching any
state. Safe to call repeatedly and from several threads.
"""

from collections.abc import Sized
from dataclasses import dataclass
from typing import Any, List, Optional

from vehicle_workflow.buisness.workflow.errors import (
    InvalidTransitionError,
    MissingRequiredDataError,
    WorkflowDomainError,
)
from vehicle_workflow.buisness.workflow.locations import DEFAULT_REGISTRY, LocationRegistry
from vehicle_workflow.buisness.workflow.step_resolver import field_value


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a move: ok, or rejected with a domain error"""

    error: Optional[WorkflowDomainError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def reason(self) -> Optional[str]:
        return str(self.error) if self.error else None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


def is_missing(value: Any) -> bool:
    """
    A required field counts as missing when it is absent, None, False or empty.
    Numeric zero is a real value (e.g. a zero mileage reading).
    """
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, Sized):
        return len(value) == 0
    return False


class TransitionValidator:
    """Validates reachability and required data for a proposed move"""

    def __init__(self, registry: LocationRegistry = DEFAULT_REGISTRY):
        self.registry = registry

    def missing_fields(self, entity: Any, to_location: str) -> List[str]:
        """All required fields of to_location the vehicle lacks, in declaration order"""
        required = self.registry.get(to_location).required_fields
        return [name for name in required if is_missing(field_value(entity, name))]

    def validate(self, entity: Any, from_location: str, to_location: str) -> ValidationResult:
        """
        Validate a move, short-circuiting on the first failing check.

        1. to_location must be in from_location's allowed_next
        2. every required field of to_location must be present

        Returns:
            ValidationResult: ok, or carrying InvalidTransitionError /
            MissingRequiredDataError
        """
        if not self.registry.is_reachable(from_location, to_location):
            return ValidationResult(InvalidTransitionError(from_location, to_location))

        missing = self.missing_fields(entity, to_location)
        if missing:
            return ValidationResult(MissingRequiredDataError(to_location, missing))

        return ValidationResult()

    def ensure_valid(self, entity: Any, from_location: str, to_location: str) -> None:
        """
        Validate a move and raise if it is rejected.

        Raises:
            InvalidTransitionError: If the destination is not reachable
            MissingRequiredDataError: If required fields are missing
        """
        self.validate(entity, from_location, to_location).raise_for_error()
