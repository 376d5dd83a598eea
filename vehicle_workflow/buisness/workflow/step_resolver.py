"""
Step derivation for the vehicle workflow

current_step() reads the vehicle's attribute flags at its location;
target_step() picks the step a vehicle enters a location with.
Both are pure functions of their inputs and the location registry.
"""

from collections.abc import Mapping
from typing import Any, Optional, Tuple

from vehicle_workflow.buisness.workflow.locations import (
    DEFAULT_REGISTRY,
    Location,
    LocationRegistry,
    Step,
)


# location -> ((attribute flag, step if flag is truthy), ...), checked in order
CURRENT_STEP_RULES = {
    Location.NEW_ARRIVALS: (
        ('isProcessed', Step.INITIAL_INSPECTION),
    ),
    Location.GARAGE_INVENTORY: (
        ('pdiCompleted', Step.PDI_COMPLETED),
        ('pdiInProgress', Step.PDI_IN_PROGRESS),
    ),
    Location.REPAIRS: (
        ('repairCompleted', Step.REPAIR_COMPLETED),
        ('repairInProgress', Step.REPAIR_IN_PROGRESS),
    ),
    Location.SHOWROOM_FLOOR_1: (
        ('inNegotiation', Step.NEGOTIATION),
        ('testDriveAvailable', Step.TEST_DRIVE),
    ),
    Location.SHOWROOM_FLOOR_2: (
        ('inNegotiation', Step.NEGOTIATION),
        ('testDriveAvailable', Step.TEST_DRIVE),
    ),
}

# Step used when none of a location's flags are set
CURRENT_STEP_FALLBACKS = {
    Location.NEW_ARRIVALS: Step.ARRIVAL,
    Location.GARAGE_INVENTORY: Step.PDI_PENDING,
    Location.REPAIRS: Step.REPAIR_NEEDED,
    Location.SHOWROOM_FLOOR_1: Step.SHOWROOM_DISPLAY,
    Location.SHOWROOM_FLOOR_2: Step.SHOWROOM_DISPLAY,
}

DEFAULT_CURRENT_STEP = Step.INITIAL_INSPECTION

# Preferred entry step per location; used only when the location permits it
TARGET_STEP_DEFAULTS = {
    Location.GARAGE_INVENTORY: Step.PDI_PENDING,
    Location.SHOWROOM_FLOOR_1: Step.SHOWROOM_DISPLAY,
    Location.SHOWROOM_FLOOR_2: Step.SHOWROOM_DISPLAY,
    Location.REPAIRS: Step.REPAIR_NEEDED,
    Location.SOLD: Step.SOLD,
}


def field_value(entity: Any, field_name: str) -> Optional[Any]:
    """
    Read one attribute from a vehicle.

    Accepts a Vehicle model (anything with get_field) or a plain mapping,
    so dashboards can pass raw rows.
    """
    getter = getattr(entity, 'get_field', None)
    if callable(getter):
        return getter(field_name)
    if isinstance(entity, Mapping):
        return entity.get(field_name)
    return getattr(entity, field_name, None)


class StepResolver:
    """Derives lifecycle steps from vehicle attributes and the location table"""

    def __init__(self, registry: LocationRegistry = DEFAULT_REGISTRY):
        self.registry = registry

    def current_step(self, entity: Any, location: str) -> str:
        """
        Derive the step a vehicle is in at a location from its attribute flags.

        Rules are checked in declaration order; the first truthy flag wins.
        Locations without rules default to initial_inspection.
        """
        rules: Tuple = CURRENT_STEP_RULES.get(location, ())
        for flag, step in rules:
            if field_value(entity, flag):
                return step
        return CURRENT_STEP_FALLBACKS.get(location, DEFAULT_CURRENT_STEP)

    def target_step(self, location: str, from_step: Optional[str] = None) -> str:
        """
        Pick the step a vehicle should enter `location` with.

        Uses the location's preferred entry step when it is permitted there,
        otherwise the first permitted step in declaration order. from_step is
        accepted for callers that track it but does not change the result.
        """
        permitted = self.registry.get(location).permitted_steps
        preferred = TARGET_STEP_DEFAULTS.get(location)
        if preferred is not None and preferred in permitted:
            return preferred
        return permitted[0]
