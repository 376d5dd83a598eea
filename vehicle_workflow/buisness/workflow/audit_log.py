"""
WorkflowEventStore - append-only audit log of vehicle moves

The event log is the authoritative lifecycle history: replaying a VIN's
events in sequence order reproduces the vehicle's current (location, step).
"""

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, inspect

from vehicle_workflow import db
from vehicle_workflow.data.core.workflow_event import WorkflowEvent
from vehicle_workflow.utils.logger import get_logger

logger = get_logger("vehicle_workflow.workflow.audit_log")


class WorkflowEventStore:
    """
    Append-only, per-VIN ordered store of WorkflowEvents.

    append() only adds the event to the current session; the caller owns the
    transaction so the vehicle update and the append commit together.
    """

    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def next_sequence(self, vin: str) -> int:
        """Next per-VIN sequence number (1-based)"""
        current = self.session.query(func.max(WorkflowEvent.sequence)).filter(
            WorkflowEvent.vin == vin
        ).scalar()
        return (current or 0) + 1

    def append(self, event: WorkflowEvent) -> WorkflowEvent:
        """
        Stage an event for insertion.

        Raises:
            ValueError: If the event is already persisted
        """
        if inspect(event).persistent:
            raise ValueError(f"Workflow event {event.id} is already recorded")
        self.session.add(event)
        logger.debug(f"Staged workflow event {event.id} for {event.vin}")
        return event

    def history(self, vin: str) -> List[WorkflowEvent]:
        """All events for a VIN, oldest first"""
        return (
            self.session.query(WorkflowEvent)
            .filter_by(vin=vin)
            .order_by(WorkflowEvent.sequence.asc())
            .all()
        )

    def latest(self, vin: str) -> Optional[WorkflowEvent]:
        return (
            self.session.query(WorkflowEvent)
            .filter_by(vin=vin)
            .order_by(WorkflowEvent.sequence.desc())
            .first()
        )

    def replay(self, vin: str, initial: Optional[Tuple[str, str]] = None) -> Optional[Tuple[str, str]]:
        """
        Reconstruct (location, step) by folding the VIN's events in order.

        Args:
            vin: Vehicle identifier
            initial: State before the first event, returned when there are none

        Returns:
            (location, step) after the last event, or `initial`
        """
        state = initial
        for event in self.history(vin):
            if state is not None and state[0] != event.from_location:
                logger.warning(
                    f"Audit log for {vin} is discontinuous at {event.id}: "
                    f"expected from {state[0]}, found {event.from_location}"
                )
            state = (event.to_location, event.to_step)
        return state

    def events_since(self, since: datetime, limit: Optional[int] = None) -> List[WorkflowEvent]:
        """Events committed at or after `since`, oldest first (for reporting)"""
        query = (
            self.session.query(WorkflowEvent)
            .filter(WorkflowEvent.timestamp >= since)
            .order_by(WorkflowEvent.timestamp.asc(), WorkflowEvent.vin.asc(), WorkflowEvent.sequence.asc())
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def count(self, vin: Optional[str] = None) -> int:
        query = self.session.query(WorkflowEvent)
        if vin:
            query = query.filter_by(vin=vin)
        return query.count()
