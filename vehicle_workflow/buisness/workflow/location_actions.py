"""
Location-specific side effects of a committed move

Each action marks the vehicle's attribute bag (inside the move's transaction)
and yields a notification message type plus text. Actions are data: a
location, an optional step guard, the attributes to set and a message type.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from vehicle_workflow.buisness.workflow.locations import Location, Step
from vehicle_workflow.buisness.workflow.narrator import WorkflowNarrator


@dataclass(frozen=True)
class LocationAction:
    location: str
    step: Optional[str]
    message_type: str
    attributes: Tuple[Tuple[str, Any], ...] = ()
    # Attributes computed from the destination, e.g. which floor a car is on
    dynamic_attributes: Tuple[Tuple[str, Callable[[str], Any]], ...] = field(default=())

    def applies_to(self, location: str, step: str) -> bool:
        return self.location == location and (self.step is None or self.step == step)


LOCATION_ACTIONS: Tuple[LocationAction, ...] = (
    LocationAction(
        location=Location.GARAGE_INVENTORY,
        step=Step.PDI_PENDING,
        message_type='pdi_slot_requested',
        attributes=(('pdiQueued', True),),
    ),
    LocationAction(
        location=Location.SHOWROOM_FLOOR_1,
        step=Step.SHOWROOM_DISPLAY,
        message_type='showroom_display_updated',
        attributes=(('displayStatus', 'on_display'),),
        dynamic_attributes=(('displayLocation', lambda location: location),),
    ),
    LocationAction(
        location=Location.SHOWROOM_FLOOR_2,
        step=Step.SHOWROOM_DISPLAY,
        message_type='showroom_display_updated',
        attributes=(('displayStatus', 'on_display'),),
        dynamic_attributes=(('displayLocation', lambda location: location),),
    ),
    LocationAction(
        location=Location.SHOWROOM_INVENTORY,
        step=None,
        message_type='showroom_ready',
        attributes=(('showroomReady', True),),
    ),
    LocationAction(
        location=Location.REPAIRS,
        step=Step.REPAIR_NEEDED,
        message_type='repair_scheduled',
        attributes=(('repairScheduled', True),),
    ),
    LocationAction(
        location=Location.SOLD,
        step=None,
        message_type='sale_completed',
        attributes=(('saleCompleted', True),),
    ),
)


class LocationActionRunner:
    """Applies the matching LOCATION_ACTIONS to a vehicle entering a location"""

    def __init__(self, narrator: WorkflowNarrator, actions: Tuple[LocationAction, ...] = LOCATION_ACTIONS):
        self.narrator = narrator
        self.actions = actions

    def _describe(self, message_type: str, vin: str, location: str) -> str:
        describe: Callable = getattr(self.narrator, message_type)
        if message_type == 'showroom_display_updated':
            return describe(vin, location)
        return describe(vin)

    def apply(self, vehicle, location: str, step: str) -> List[Dict[str, Any]]:
        """
        Mark the vehicle for every matching action.

        Returns:
            list: one {'type', 'message', 'attributes'} dict per applied action,
            to be published after the move commits
        """
        applied = []
        for action in self.actions:
            if not action.applies_to(location, step):
                continue
            changes = dict(action.attributes)
            for name, compute in action.dynamic_attributes:
                changes[name] = compute(location)
            for name, value in changes.items():
                vehicle.set_attribute(name, value)
            applied.append({
                'type': action.message_type,
                'message': self._describe(action.message_type, vehicle.vin, location),
                'attributes': changes,
            })
        return applied
