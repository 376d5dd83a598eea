from sqlalchemy import event
from sqlalchemy.orm import Session

from vehicle_workflow import db
from vehicle_workflow.buisness.core.data_insertion_mixin import DataInsertionMixin
from vehicle_workflow.buisness.workflow.errors import AuditLogImmutableError
from vehicle_workflow.data.core.audited_base import utcnow


class WorkflowEvent(db.Model, DataInsertionMixin):
    """
    Immutable record of one committed vehicle move.

    Rows are only ever inserted. Ordering per VIN is by `sequence`, which the
    (vin, sequence) unique constraint keeps gap-free under concurrent writers.
    """
    __tablename__ = 'workflow_events'

    id = db.Column(db.String(40), primary_key=True)
    vin = db.Column(db.String(17), nullable=False, index=True)
    sequence = db.Column(db.Integer, nullable=False)

    from_location = db.Column(db.String(40), nullable=False)
    to_location = db.Column(db.String(40), nullable=False)
    from_step = db.Column(db.String(40), nullable=False)
    to_step = db.Column(db.String(40), nullable=False)

    timestamp = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    actor = db.Column(db.String(120), nullable=False)
    reason = db.Column(db.Text, nullable=False, default='')
    event_metadata = db.Column(db.JSON, nullable=True)

    __table_args__ = (
        db.UniqueConstraint('vin', 'sequence', name='uq_workflow_events_vin_sequence'),
    )

    def __repr__(self):
        return (
            f'<WorkflowEvent {self.id}: {self.from_location}/{self.from_step} '
            f'→ {self.to_location}/{self.to_step}>'
        )

    @staticmethod
    def make_id(vin, sequence):
        return f"{vin}-{sequence:06d}"

    def as_payload(self):
        """Plain dict for notification subscribers; never holds ORM state"""
        payload = self.to_dict()
        payload['metadata'] = dict(payload.pop('event_metadata') or {})
        return payload


@event.listens_for(WorkflowEvent, 'before_update')
def _reject_event_update(mapper, connection, target):
    raise AuditLogImmutableError(f"Workflow event {target.id} is immutable and cannot be updated")


@event.listens_for(WorkflowEvent, 'before_delete')
def _reject_event_delete(mapper, connection, target):
    raise AuditLogImmutableError(f"Workflow event {target.id} is append-only and cannot be deleted")


# Bulk query.update()/delete() and update()/delete() statements bypass the flush events above
@event.listens_for(Session, 'do_orm_execute')
def _reject_bulk_event_changes(orm_execute_state):
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return
    mappers = [orm_execute_state.bind_mapper, *orm_execute_state.all_mappers]
    if any(mapper is not None and issubclass(mapper.class_, WorkflowEvent) for mapper in mappers):
        action = 'updated' if orm_execute_state.is_update else 'deleted'
        raise AuditLogImmutableError(f"Workflow events are append-only and cannot be bulk {action}")
