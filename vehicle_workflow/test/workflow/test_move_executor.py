"""
Tests for committing vehicle moves through the MoveExecutor
"""
import logging
import threading
from datetime import datetime

import pytest
from sqlalchemy import delete, text, update

from vehicle_workflow.buisness.workflow.errors import (
    AuditLogImmutableError,
    ConcurrentModificationError,
    EntityNotFoundError,
    InvalidTransitionError,
    MissingRequiredDataError,
)
from vehicle_workflow.buisness.workflow.locations import Location, Step
from vehicle_workflow.data.core.workflow_event import WorkflowEvent
from vehicle_workflow.test.vehicle_data import FULLY_QUALIFIED, TEST_VIN


def snapshot(orchestrator, vin=TEST_VIN):
    """Everything a rejected move must leave untouched"""
    vehicle = orchestrator.get_entity_by_vin(vin)
    return (
        vehicle.current_location,
        vehicle.current_step,
        vehicle.version,
        dict(vehicle.attributes),
        len(vehicle.location_history),
        orchestrator.audit_log.count(vin),
    )


def test_move_commits_vehicle_history_and_event(orchestrator, make_vehicle):
    make_vehicle(**FULLY_QUALIFIED)

    event = orchestrator.executor.move(
        TEST_VIN, Location.NEW_ARRIVALS, Location.CAR_INVENTORY, 'Unloaded from carrier', 'yard-1',
        metadata={'bay': 4},
    )

    assert event.id == f"{TEST_VIN}-000001"
    assert event.sequence == 1
    assert (event.from_location, event.from_step) == (Location.NEW_ARRIVALS, Step.ARRIVAL)
    assert (event.to_location, event.to_step) == (Location.CAR_INVENTORY, Step.INITIAL_INSPECTION)
    assert event.actor == 'yard-1'
    assert event.event_metadata == {'bay': 4}

    vehicle = orchestrator.get_entity_by_vin(TEST_VIN)
    assert vehicle.current_location == Location.CAR_INVENTORY
    assert vehicle.current_step == Step.INITIAL_INSPECTION
    assert vehicle.last_moved_by == 'yard-1'
    assert vehicle.last_moved_at == event.timestamp
    assert [(h.position, h.location, h.event_id) for h in vehicle.location_history] == [
        (1, Location.CAR_INVENTORY, event.id),
    ]


def test_move_accepts_lowercase_vin(orchestrator, make_vehicle):
    make_vehicle(**FULLY_QUALIFIED)
    event = orchestrator.executor.move(
        TEST_VIN.lower(), Location.NEW_ARRIVALS, Location.CAR_INVENTORY, '', 'yard-1'
    )
    assert event.vin == TEST_VIN


def test_unknown_vin_is_rejected(orchestrator):
    with pytest.raises(EntityNotFoundError) as exc_info:
        orchestrator.executor.move(TEST_VIN, Location.NEW_ARRIVALS, Location.CAR_INVENTORY, '', 'yard-1')
    assert exc_info.value.kind == 'EntityNotFound'
    assert orchestrator.audit_log.count() == 0


def test_actor_is_required(orchestrator, make_vehicle):
    make_vehicle(**FULLY_QUALIFIED)
    with pytest.raises(ValueError):
        orchestrator.executor.move(TEST_VIN, Location.NEW_ARRIVALS, Location.CAR_INVENTORY, '', '')


def test_metadata_must_be_json_serializable(orchestrator, make_vehicle):
    make_vehicle(**FULLY_QUALIFIED)
    before = snapshot(orchestrator)

    with pytest.raises(ValueError, match="JSON"):
        orchestrator.executor.move(
            TEST_VIN, Location.NEW_ARRIVALS, Location.CAR_INVENTORY, '', 'yard-1',
            metadata={'unloaded_at': datetime(2026, 10, 1, 9, 30)},
        )

    assert snapshot(orchestrator) == before
    assert orchestrator.audit_log.count() == 0


def test_invalid_transition_leaves_state_untouched(orchestrator, make_vehicle):
    make_vehicle(**FULLY_QUALIFIED)
    before = snapshot(orchestrator)

    with pytest.raises(InvalidTransitionError):
        orchestrator.executor.move(TEST_VIN, Location.NEW_ARRIVALS, Location.SOLD, 'skip ahead', 'yard-1')

    assert snapshot(orchestrator) == before


def test_missing_data_leaves_state_untouched(orchestrator, make_vehicle):
    make_vehicle(arrivalDate='2026-10-01')
    before = snapshot(orchestrator)

    with pytest.raises(MissingRequiredDataError) as exc_info:
        orchestrator.executor.move(TEST_VIN, Location.NEW_ARRIVALS, Location.CAR_INVENTORY, '', 'yard-1')

    assert exc_info.value.fields == ['price']
    assert snapshot(orchestrator) == before


def test_stale_from_location_is_a_conflict(orchestrator, make_vehicle):
    make_vehicle(location=Location.CAR_INVENTORY, **FULLY_QUALIFIED)
    before = snapshot(orchestrator)

    with pytest.raises(ConcurrentModificationError) as exc_info:
        orchestrator.executor.move(TEST_VIN, Location.NEW_ARRIVALS, Location.CAR_INVENTORY, '', 'yard-1')

    assert exc_info.value.kind == 'ConcurrentModificationConflict'
    assert snapshot(orchestrator) == before


def test_version_mismatch_is_a_conflict(orchestrator, make_vehicle, db, monkeypatch):
    make_vehicle(**FULLY_QUALIFIED)
    next_sequence = orchestrator.audit_log.next_sequence

    def bump_version_then_sequence(vin):
        # Another process commits a change after this mover read the row
        with db.engine.begin() as connection:
            connection.execute(
                text("UPDATE vehicles SET version = version + 1 WHERE vin = :vin"), {'vin': vin}
            )
        return next_sequence(vin)

    monkeypatch.setattr(orchestrator.audit_log, 'next_sequence', bump_version_then_sequence)

    with pytest.raises(ConcurrentModificationError):
        orchestrator.executor.move(TEST_VIN, Location.NEW_ARRIVALS, Location.CAR_INVENTORY, '', 'yard-1')

    vehicle = orchestrator.get_entity_by_vin(TEST_VIN)
    assert vehicle.current_location == Location.NEW_ARRIVALS
    assert orchestrator.audit_log.count(TEST_VIN) == 0


def test_duplicate_sequence_is_a_conflict(orchestrator, make_vehicle, db, monkeypatch):
    make_vehicle(**FULLY_QUALIFIED)
    orchestrator.executor.move(TEST_VIN, Location.NEW_ARRIVALS, Location.CAR_INVENTORY, '', 'yard-1')
    db.session.expunge_all()

    monkeypatch.setattr(orchestrator.audit_log, 'next_sequence', lambda vin: 1)

    with pytest.raises(ConcurrentModificationError):
        orchestrator.executor.move(TEST_VIN, Location.CAR_INVENTORY, Location.GARAGE_INVENTORY, '', 'yard-1')

    vehicle = orchestrator.get_entity_by_vin(TEST_VIN)
    assert vehicle.current_location == Location.CAR_INVENTORY
    assert len(vehicle.location_history) == 1
    assert orchestrator.audit_log.count(TEST_VIN) == 1


def test_concurrent_moves_of_one_vehicle_commit_once(app, orchestrator, make_vehicle):
    make_vehicle(**FULLY_QUALIFIED)
    barrier = threading.Barrier(2)
    results = []

    def mover(actor):
        with app.app_context():
            barrier.wait()
            result = orchestrator.move_entity(
                TEST_VIN, Location.NEW_ARRIVALS, Location.CAR_INVENTORY, 'race', actor
            )
            results.append((result.success, result.error_kind))

    threads = [threading.Thread(target=mover, args=(f"yard-{i}",)) for i in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(10)

    assert sorted(results) == [(False, 'ConcurrentModificationConflict'), (True, None)]
    assert orchestrator.audit_log.count(TEST_VIN) == 1


def test_garage_entry_queues_pdi(orchestrator, make_vehicle, collected):
    make_vehicle(location=Location.CAR_INVENTORY, **FULLY_QUALIFIED)

    event = orchestrator.executor.move(
        TEST_VIN, Location.CAR_INVENTORY, Location.GARAGE_INVENTORY, 'PDI', 'yard-1'
    )
    assert event.to_step == Step.PDI_PENDING
    assert orchestrator.get_entity_by_vin(TEST_VIN).get_field('pdiQueued') is True

    assert orchestrator.dispatcher.drain(timeout=5)
    assert [m.type for m in collected] == ['location_change', 'pdi_slot_requested']
    assert collected[1].payload['message'] == f"Assigning {TEST_VIN} to next available PDI slot"


def test_showroom_entry_updates_display(orchestrator, make_vehicle, collected):
    make_vehicle(location=Location.CAR_INVENTORY, **FULLY_QUALIFIED)

    orchestrator.executor.move(TEST_VIN, Location.CAR_INVENTORY, Location.SHOWROOM_FLOOR_2, '', 'sales-1')

    vehicle = orchestrator.get_entity_by_vin(TEST_VIN)
    assert vehicle.current_step == Step.SHOWROOM_DISPLAY
    assert vehicle.get_field('displayLocation') == Location.SHOWROOM_FLOOR_2
    assert vehicle.get_field('displayStatus') == 'on_display'

    assert orchestrator.dispatcher.drain(timeout=5)
    display = [m for m in collected if m.type == 'showroom_display_updated']
    assert display[0].payload['attributes'] == {
        'displayStatus': 'on_display',
        'displayLocation': Location.SHOWROOM_FLOOR_2,
    }


def test_location_change_message_is_plain_data(orchestrator, make_vehicle, collected):
    make_vehicle(**FULLY_QUALIFIED)
    orchestrator.executor.move(TEST_VIN, Location.NEW_ARRIVALS, Location.CAR_INVENTORY, 'unload', 'yard-1')

    assert orchestrator.dispatcher.drain(timeout=5)
    message = collected[0]
    assert message.type == 'location_change'
    assert message.vin == TEST_VIN
    assert message.payload['id'] == f"{TEST_VIN}-000001"
    assert message.payload['to_location'] == Location.CAR_INVENTORY
    assert message.payload['metadata'] == {}
    assert message.payload['message'] == f"Voyah Free (VIN: {TEST_VIN}) moved to Car Inventory"


def test_failing_subscriber_does_not_affect_move(orchestrator, make_vehicle):
    make_vehicle(**FULLY_QUALIFIED)

    def broken(message):
        raise ConnectionError("notification center unavailable")

    orchestrator.subscribe(broken)
    result = orchestrator.move_entity(TEST_VIN, Location.NEW_ARRIVALS, Location.CAR_INVENTORY, '', 'yard-1')

    assert result.success
    assert orchestrator.dispatcher.drain(timeout=5)
    assert len(orchestrator.dispatcher.failures) == 1
    failure = orchestrator.dispatcher.failures[0]
    assert failure.subscriber == 'broken'
    assert failure.attempts == 3
    assert failure.message.type == 'location_change'


def test_move_log_redacts_customer_data(orchestrator, make_vehicle, caplog):
    make_vehicle(location=Location.SHOWROOM_FLOOR_1, **FULLY_QUALIFIED)

    with caplog.at_level(logging.INFO, logger="vehicle_workflow"):
        orchestrator.executor.move(
            TEST_VIN, Location.SHOWROOM_FLOOR_1, Location.SOLD, 'Deal signed', 'sales-1',
            metadata={'customerInfo': {'name': 'J. Doe'}, 'deal': 'D-17'},
        )

    contexts = [record.context for record in caplog.records if hasattr(record, 'context')]
    assert contexts[-1]['metadata'] == {'customerInfo': '[REDACTED]', 'deal': 'D-17'}
    assert 'J. Doe' not in caplog.text


def test_committed_events_cannot_be_changed(orchestrator, make_vehicle, db):
    make_vehicle(**FULLY_QUALIFIED)
    event = orchestrator.executor.move(TEST_VIN, Location.NEW_ARRIVALS, Location.CAR_INVENTORY, '', 'yard-1')

    event.reason = 'rewritten'
    with pytest.raises(AuditLogImmutableError):
        db.session.commit()
    db.session.rollback()

    stored = db.session.get(WorkflowEvent, f"{TEST_VIN}-000001")
    db.session.delete(stored)
    with pytest.raises(AuditLogImmutableError):
        db.session.commit()
    db.session.rollback()

    assert orchestrator.audit_log.count(TEST_VIN) == 1
    assert orchestrator.audit_log.latest(TEST_VIN).reason == ''


def test_bulk_statements_cannot_rewrite_events(orchestrator, make_vehicle, db):
    make_vehicle(**FULLY_QUALIFIED)
    orchestrator.executor.move(TEST_VIN, Location.NEW_ARRIVALS, Location.CAR_INVENTORY, 'Unloaded', 'yard-1')

    with pytest.raises(AuditLogImmutableError):
        db.session.query(WorkflowEvent).filter_by(vin=TEST_VIN).update({'reason': 'rewritten'})
    db.session.rollback()

    with pytest.raises(AuditLogImmutableError):
        db.session.execute(update(WorkflowEvent).where(WorkflowEvent.vin == TEST_VIN).values(actor='someone-else'))
    db.session.rollback()

    with pytest.raises(AuditLogImmutableError):
        db.session.query(WorkflowEvent).filter_by(vin=TEST_VIN).delete()
    db.session.rollback()

    with pytest.raises(AuditLogImmutableError):
        db.session.execute(delete(WorkflowEvent))
    db.session.rollback()

    event = orchestrator.audit_log.latest(TEST_VIN)
    assert orchestrator.audit_log.count(TEST_VIN) == 1
    assert (event.reason, event.actor) == ('Unloaded', 'yard-1')
