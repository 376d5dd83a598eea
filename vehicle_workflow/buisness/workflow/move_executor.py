"""
MoveExecutor - applies validated vehicle moves

The only writer of a vehicle's location and step. A move is validated and
committed under the VIN's lock; the vehicle update, its location history row,
location side effects and the audit event share one database transaction.
Notifications are published only after that transaction commits.
"""

import json
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from vehicle_workflow import db
from vehicle_workflow.buisness.core.vehicle_store import VehicleStore
from vehicle_workflow.buisness.workflow.audit_log import WorkflowEventStore
from vehicle_workflow.buisness.workflow.errors import (
    ConcurrentModificationError,
    EntityNotFoundError,
    WorkflowDomainError,
)
from vehicle_workflow.buisness.workflow.location_actions import LocationActionRunner
from vehicle_workflow.buisness.workflow.locations import DEFAULT_REGISTRY, LocationRegistry
from vehicle_workflow.buisness.workflow.narrator import WorkflowNarrator
from vehicle_workflow.buisness.workflow.notifications import NotificationDispatcher, NotificationMessage
from vehicle_workflow.buisness.workflow.step_resolver import StepResolver
from vehicle_workflow.buisness.workflow.transition_validator import TransitionValidator
from vehicle_workflow.buisness.workflow.vin_locks import VinLockRegistry
from vehicle_workflow.data.core.audited_base import utcnow
from vehicle_workflow.data.core.vehicle import LocationHistoryEntry
from vehicle_workflow.data.core.workflow_event import WorkflowEvent
from vehicle_workflow.utils.logger import get_logger
from vehicle_workflow.utils.logging_sanitizer import sanitize_dict

logger = get_logger("vehicle_workflow.workflow.move_executor")


class MoveExecutor:
    """
    Validates and commits a single vehicle move.

    Collaborators are injected so tests can run isolated instances.
    """

    def __init__(
        self,
        store: VehicleStore,
        audit_log: WorkflowEventStore,
        registry: LocationRegistry = DEFAULT_REGISTRY,
        resolver: Optional[StepResolver] = None,
        validator: Optional[TransitionValidator] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        locks: Optional[VinLockRegistry] = None,
    ):
        self.store = store
        self.audit_log = audit_log
        self.registry = registry
        self.resolver = resolver or StepResolver(registry)
        self.validator = validator or TransitionValidator(registry)
        self.dispatcher = dispatcher
        self.locks = locks or VinLockRegistry()
        self.narrator = WorkflowNarrator(registry)
        self.actions = LocationActionRunner(self.narrator)

    def move(
        self,
        vin: str,
        from_location: str,
        to_location: str,
        reason: str,
        actor: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> WorkflowEvent:
        """
        Move a vehicle from one location to another.

        Args:
            vin: Vehicle identifier
            from_location: Location the caller believes the vehicle is at
            to_location: Destination location
            reason: Why the vehicle is moving (kept in the audit event)
            actor: Who moved it
            metadata: Optional extra data stored on the event

        Returns:
            WorkflowEvent: The committed audit event

        Raises:
            EntityNotFoundError: If the VIN is unknown
            InvalidTransitionError: If to_location is not reachable from from_location
            MissingRequiredDataError: If the vehicle lacks required fields
            ConcurrentModificationError: If the vehicle moved since the caller read it
            ValueError: If actor is empty or metadata is not JSON serializable
        """
        vin = VehicleStore.normalize_vin(vin)
        if not actor:
            raise ValueError("actor is required for every move")
        try:
            json.dumps(metadata or {})
        except (TypeError, ValueError) as e:
            raise ValueError(f"metadata must be JSON serializable: {e}") from e

        with self.locks.hold(vin):
            event, side_effects = self._validate_and_commit(
                vin, from_location, to_location, reason, actor, metadata
            )

        self._publish(event, side_effects)
        return event

    def _validate_and_commit(self, vin, from_location, to_location, reason, actor, metadata):
        vehicle = self.store.get_by_vin(vin)
        if vehicle is None:
            logger.warning(f"Move requested for unknown VIN {vin}")
            raise EntityNotFoundError(vin)

        # Re-read so the validation snapshot is the committed row, not the identity map
        db.session.refresh(vehicle)

        result = self.validator.validate(vehicle, from_location, to_location)
        if not result.ok:
            logger.warning(self.narrator.move_rejected(vin, result.error))
            raise result.error

        if vehicle.current_location != from_location:
            logger.warning(
                f"Stale move for {vin}: requested from {from_location}, "
                f"vehicle is at {vehicle.current_location}"
            )
            raise ConcurrentModificationError(
                vin, f"vehicle is at {vehicle.current_location}, not {from_location}"
            )

        from_step = self.resolver.current_step(vehicle, from_location)
        to_step = self.resolver.target_step(to_location, from_step)
        if to_step not in self.registry.get(to_location).permitted_steps:
            raise WorkflowDomainError(f"Resolved step {to_step} is not permitted at {to_location}")

        now = utcnow()
        sequence = self.audit_log.next_sequence(vin)
        event = WorkflowEvent(
            id=WorkflowEvent.make_id(vin, sequence),
            vin=vin,
            sequence=sequence,
            from_location=from_location,
            to_location=to_location,
            from_step=from_step,
            to_step=to_step,
            timestamp=now,
            actor=actor,
            reason=reason or '',
            event_metadata=dict(metadata or {}),
        )

        try:
            vehicle.current_location = to_location
            vehicle.current_step = to_step
            vehicle.last_moved_at = now
            vehicle.last_moved_by = actor
            vehicle.location_history.append(LocationHistoryEntry(
                position=len(vehicle.location_history) + 1,
                event_id=event.id,
                location=to_location,
                step=to_step,
                moved_at=now,
                moved_by=actor,
                reason=reason,
            ))
            side_effects = self.actions.apply(vehicle, to_location, to_step)
            self.audit_log.append(event)
            db.session.commit()
        except (StaleDataError, IntegrityError) as e:
            db.session.rollback()
            logger.warning(f"Concurrent modification while moving {vin}: {type(e).__name__}")
            raise ConcurrentModificationError(vin, type(e).__name__) from e
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error moving vehicle {vin}: {e}")
            raise

        logger.info(
            self.narrator.location_changed(from_location, to_location, from_step, to_step, reason),
            extra={'context': {
                'vin': vin,
                'event_id': event.id,
                'actor': actor,
                'metadata': sanitize_dict(dict(metadata or {})),
            }},
        )
        return event, side_effects

    def _publish(self, event: WorkflowEvent, side_effects: List[Dict[str, Any]]) -> None:
        """Fire-and-forget notifications for a committed move"""
        if self.dispatcher is None:
            return

        payload = event.as_payload()
        vehicle = self.store.get_by_vin(event.vin)
        model = vehicle.model if vehicle is not None else None

        self.dispatcher.notify(NotificationMessage(
            type='location_change',
            vin=event.vin,
            payload=dict(payload, message=self.narrator.vehicle_moved(event.vin, model, event.to_location)),
        ))
        for effect in side_effects:
            self.dispatcher.notify(NotificationMessage(
                type=effect['type'],
                vin=event.vin,
                payload={
                    'event_id': event.id,
                    'location': event.to_location,
                    'step': event.to_step,
                    'message': effect['message'],
                    'attributes': effect['attributes'],
                },
            ))
