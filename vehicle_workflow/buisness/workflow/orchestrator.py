"""
WorkflowOrchestrator - Domain Facade for the vehicle workflow

Provides the intention-revealing interface UI, dashboard and reporting
collaborators use. Owns its registry, store, audit log and dispatcher, so
independent instances (tests, workers) never share state by accident.
Delegates mutation work to MoveExecutor.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from vehicle_workflow.buisness.core.vehicle_store import VehicleStore
from vehicle_workflow.buisness.workflow.action_recommender import ActionRecommender, Recommendation
from vehicle_workflow.buisness.workflow.audit_log import WorkflowEventStore
from vehicle_workflow.buisness.workflow.errors import (
    ConcurrentModificationError,
    EntityNotFoundError,
    InvalidTransitionError,
    MissingRequiredDataError,
    WorkflowDomainError,
)
from vehicle_workflow.buisness.workflow.locations import DEFAULT_REGISTRY, LocationRegistry
from vehicle_workflow.buisness.workflow.move_executor import MoveExecutor
from vehicle_workflow.buisness.workflow.notifications import NotificationDispatcher
from vehicle_workflow.buisness.workflow.step_resolver import StepResolver, field_value
from vehicle_workflow.buisness.workflow.transition_validator import TransitionValidator, ValidationResult
from vehicle_workflow.buisness.workflow.vin_locks import VinLockRegistry
from vehicle_workflow.data.core.vehicle import Vehicle
from vehicle_workflow.data.core.workflow_event import WorkflowEvent

# Errors a move request can be rejected with; anything else propagates
REJECTIONS = (
    EntityNotFoundError,
    InvalidTransitionError,
    MissingRequiredDataError,
    ConcurrentModificationError,
)


@dataclass(frozen=True)
class MoveResult:
    """Outcome of move_entity: the committed event, or the structured rejection"""

    success: bool
    event: Optional[WorkflowEvent] = None
    error: Optional[WorkflowDomainError] = None

    @classmethod
    def ok(cls, event: WorkflowEvent) -> 'MoveResult':
        return cls(success=True, event=event)

    @classmethod
    def rejected(cls, error: WorkflowDomainError) -> 'MoveResult':
        return cls(success=False, error=error)

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error else None

    @property
    def reason(self) -> Optional[str]:
        return str(self.error) if self.error else None

    @property
    def missing_fields(self) -> List[str]:
        if isinstance(self.error, MissingRequiredDataError):
            return list(self.error.fields)
        return []


class WorkflowOrchestrator:
    """
    Domain Facade for vehicle moves.

    Pattern: explicit service object built from its collaborators.
    """

    def __init__(
        self,
        registry: LocationRegistry = DEFAULT_REGISTRY,
        store: Optional[VehicleStore] = None,
        audit_log: Optional[WorkflowEventStore] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        locks: Optional[VinLockRegistry] = None,
    ):
        self.registry = registry
        self.store = store or VehicleStore(registry)
        self.audit_log = audit_log or WorkflowEventStore()
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.resolver = StepResolver(registry)
        self.validator = TransitionValidator(registry)
        self.recommender = ActionRecommender(registry)
        self.executor = MoveExecutor(
            store=self.store,
            audit_log=self.audit_log,
            registry=registry,
            resolver=self.resolver,
            validator=self.validator,
            dispatcher=self.dispatcher,
            locks=locks,
        )

    @classmethod
    def from_config(cls, config) -> 'WorkflowOrchestrator':
        """
        Factory method building an orchestrator from Flask config.

        Args:
            config: Mapping with the WORKFLOW_NOTIFY_* keys

        Returns:
            WorkflowOrchestrator: New, independent instance
        """
        dispatcher = NotificationDispatcher(
            max_attempts=config.get('WORKFLOW_NOTIFY_MAX_ATTEMPTS', 3),
            retry_delay=config.get('WORKFLOW_NOTIFY_RETRY_DELAY', 0.5),
            failure_history=config.get('WORKFLOW_NOTIFY_FAILURE_HISTORY', 100),
        )
        return cls(dispatcher=dispatcher)

    # ========== Boundary Operations ==========

    def get_entity_by_vin(self, vin: str) -> Optional[Vehicle]:
        return self.store.get_by_vin(vin)

    def move_entity(
        self,
        vin: str,
        from_location: str,
        to_location: str,
        reason: str,
        actor: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> MoveResult:
        """
        Move a vehicle and report the outcome instead of raising.

        Returns:
            MoveResult: success with the committed event, or the rejection
            (EntityNotFound, InvalidTransition, MissingRequiredData,
            ConcurrentModificationConflict)

        Raises:
            ValueError: For caller bugs rather than rejections: an empty actor
            or metadata that is not JSON serializable
        """
        try:
            event = self.executor.move(vin, from_location, to_location, reason, actor, metadata)
        except REJECTIONS as e:
            return MoveResult.rejected(e)
        return MoveResult.ok(event)

    def validate_move(self, vin: str, from_location: str, to_location: str) -> ValidationResult:
        """Dry run of a move for forms that want to show problems before submitting"""
        vehicle = self.store.get_by_vin(vin)
        if vehicle is None:
            return ValidationResult(EntityNotFoundError(VehicleStore.normalize_vin(vin)))
        return self.validator.validate(vehicle, from_location, to_location)

    def get_workflow_history(self, vin: str) -> List[WorkflowEvent]:
        return self.audit_log.history(VehicleStore.normalize_vin(vin))

    def replay_state(self, vin: str) -> Optional[Tuple[str, str]]:
        """(location, step) rebuilt from the audit log alone"""
        return self.audit_log.replay(VehicleStore.normalize_vin(vin))

    def get_recommended_action(self, entity: Any) -> Recommendation:
        return self.recommender.recommend(entity)

    def get_current_step(self, entity: Any) -> str:
        """Step derived from the vehicle's flags at its current location"""
        return self.resolver.current_step(entity, field_value(entity, 'currentLocation'))

    def get_workflow_status(self) -> Dict[str, int]:
        """Number of vehicles at every location"""
        return self.store.count_by_location()

    # ========== Registry Helpers ==========

    def get_allowed_next_locations(self, location: str) -> Tuple[str, ...]:
        return self.registry.allowed_next(location)

    def is_valid_location_transition(self, from_location: str, to_location: str) -> bool:
        return self.registry.is_reachable(from_location, to_location)

    def get_location_display_name(self, location: str) -> str:
        return self.registry.display_name(location)

    def get_location_route(self, location: str) -> str:
        return self.registry.route(location)

    # ========== Notifications ==========

    def subscribe(self, subscriber):
        """Register a notification-center collaborator (callable or object with notify())"""
        return self.dispatcher.subscribe(subscriber)

    def shutdown(self, timeout: float = 5.0) -> None:
        self.dispatcher.close(timeout)
