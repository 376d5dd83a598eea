"""
Domain exceptions for the vehicle workflow

These exceptions represent rejected moves and violated invariants.
They are raised by the business layer; WorkflowOrchestrator converts the
request-level ones into a MoveResult for UI collaborators.
"""

from typing import Iterable, Optional


class WorkflowDomainError(Exception):
    """Base exception for all vehicle workflow domain errors"""

    kind = 'WorkflowError'


class EntityNotFoundError(WorkflowDomainError):
    """Raised when the referenced VIN does not exist in the vehicle store"""

    kind = 'EntityNotFound'

    def __init__(self, vin: str):
        self.vin = vin
        super().__init__(f"Vehicle with VIN {vin} not found")


class InvalidTransitionError(WorkflowDomainError):
    """Raised when the destination is not reachable from the source location"""

    kind = 'InvalidTransition'

    def __init__(self, from_location: str, to_location: str):
        self.from_location = from_location
        self.to_location = to_location
        super().__init__(f"Invalid location transition: {from_location} → {to_location}")


class MissingRequiredDataError(WorkflowDomainError):
    """Raised when the vehicle lacks fields the destination location requires"""

    kind = 'MissingRequiredData'

    def __init__(self, location: str, fields: Iterable[str]):
        self.location = location
        self.fields = list(fields)
        super().__init__(
            f"Vehicle is missing required data for {location}: {', '.join(self.fields)}"
        )


class ConcurrentModificationError(WorkflowDomainError):
    """Raised when the vehicle changed between the caller's read and the commit"""

    kind = 'ConcurrentModificationConflict'

    def __init__(self, vin: str, detail: Optional[str] = None):
        self.vin = vin
        self.detail = detail
        message = f"Vehicle {vin} was modified concurrently; reload and retry"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class UnknownLocationError(WorkflowDomainError, LookupError):
    """Raised when code asks the registry for a location that is not declared"""

    kind = 'UnknownLocation'

    def __init__(self, location: str):
        self.location = location
        super().__init__(f"Unknown workflow location: {location!r}")


class AuditLogImmutableError(WorkflowDomainError):
    """Raised when a persisted workflow event is updated or deleted"""

    kind = 'AuditLogImmutable'
