"""
Tests for the append-only workflow event store
"""
from datetime import timedelta

import pytest

from vehicle_workflow.buisness.workflow.locations import Location, Step
from vehicle_workflow.data.core.audited_base import utcnow
from vehicle_workflow.test.vehicle_data import FULLY_QUALIFIED, TEST_VIN, make_vin

FULL_ROUTE = (
    Location.NEW_ARRIVALS,
    Location.CAR_INVENTORY,
    Location.GARAGE_INVENTORY,
    Location.SHOWROOM_FLOOR_1,
    Location.SHOWROOM_FLOOR_2,
    Location.SOLD,
    Location.SHIPPED,
)


def drive(orchestrator, vin, route):
    for from_location, to_location in zip(route, route[1:]):
        result = orchestrator.move_entity(vin, from_location, to_location, f"to {to_location}", 'yard-1')
        assert result.success, result.reason


def test_history_is_ordered_by_sequence(orchestrator, make_vehicle):
    make_vehicle(**FULLY_QUALIFIED)
    drive(orchestrator, TEST_VIN, FULL_ROUTE)

    history = orchestrator.get_workflow_history(TEST_VIN)
    assert [event.sequence for event in history] == [1, 2, 3, 4, 5, 6]
    assert [event.to_location for event in history] == list(FULL_ROUTE[1:])
    # Each event starts where the previous one ended
    for previous, current in zip(history, history[1:]):
        assert current.from_location == previous.to_location


def test_replay_reproduces_current_state(orchestrator, make_vehicle):
    make_vehicle(**FULLY_QUALIFIED)
    drive(orchestrator, TEST_VIN, FULL_ROUTE)

    vehicle = orchestrator.get_entity_by_vin(TEST_VIN)
    assert (vehicle.current_location, vehicle.current_step) == (Location.SHIPPED, Step.DELIVERED)
    assert orchestrator.replay_state(TEST_VIN) == (vehicle.current_location, vehicle.current_step)
    assert [entry.location for entry in vehicle.location_history] == list(FULL_ROUTE[1:])


def test_replay_of_unmoved_vehicle(orchestrator, make_vehicle):
    make_vehicle(**FULLY_QUALIFIED)
    assert orchestrator.replay_state(TEST_VIN) is None
    initial = (Location.NEW_ARRIVALS, Step.ARRIVAL)
    assert orchestrator.audit_log.replay(TEST_VIN, initial=initial) == initial


def test_replay_is_per_vin(orchestrator, make_vehicle):
    other = make_vin(1)
    make_vehicle(**FULLY_QUALIFIED)
    make_vehicle(vin=other, **FULLY_QUALIFIED)
    drive(orchestrator, TEST_VIN, FULL_ROUTE[:3])
    drive(orchestrator, other, FULL_ROUTE[:2])

    assert orchestrator.replay_state(TEST_VIN) == (Location.GARAGE_INVENTORY, Step.PDI_PENDING)
    assert orchestrator.replay_state(other) == (Location.CAR_INVENTORY, Step.INITIAL_INSPECTION)
    assert orchestrator.audit_log.next_sequence(TEST_VIN) == 3
    assert orchestrator.audit_log.next_sequence(other) == 2
    assert orchestrator.audit_log.count() == 3


def test_rejections_are_not_recorded(orchestrator, make_vehicle):
    make_vehicle(**FULLY_QUALIFIED)
    drive(orchestrator, TEST_VIN, FULL_ROUTE[:2])
    orchestrator.move_entity(TEST_VIN, Location.CAR_INVENTORY, Location.SHIPPED, '', 'yard-1')

    assert orchestrator.audit_log.count(TEST_VIN) == 1
    assert orchestrator.audit_log.latest(TEST_VIN).to_location == Location.CAR_INVENTORY


def test_events_since(orchestrator, make_vehicle):
    start = utcnow() - timedelta(seconds=1)
    make_vehicle(**FULLY_QUALIFIED)
    drive(orchestrator, TEST_VIN, FULL_ROUTE[:3])

    assert len(orchestrator.audit_log.events_since(start)) == 2
    assert len(orchestrator.audit_log.events_since(start, limit=1)) == 1
    assert orchestrator.audit_log.events_since(utcnow() + timedelta(hours=1)) == []


def test_append_rejects_recorded_events(orchestrator, make_vehicle):
    make_vehicle(**FULLY_QUALIFIED)
    drive(orchestrator, TEST_VIN, FULL_ROUTE[:2])

    with pytest.raises(ValueError, match="already recorded"):
        orchestrator.audit_log.append(orchestrator.audit_log.latest(TEST_VIN))
