"""
ActionRecommender - suggested next move for a vehicle

Pure decision table over current vehicle attributes and the location
registry. Never mutates anything and never reads the audit log.
"""

from dataclasses import dataclass
from typing import Any, Optional

from vehicle_workflow.buisness.workflow.locations import DEFAULT_REGISTRY, Location, LocationRegistry
from vehicle_workflow.buisness.workflow.step_resolver import field_value


class Priority:
    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'


@dataclass(frozen=True)
class Recommendation:
    action: str
    location: Optional[str]
    priority: str
    # Whether `location` is a direct successor of the vehicle's current location
    reachable: bool = False

    def to_dict(self):
        return {
            'action': self.action,
            'location': self.location,
            'priority': self.priority,
            'reachable': self.reachable,
        }


class ActionRecommender:
    """
    Decision table, first match wins:

    1. sold or shipped                          → no action (low)
    2. PDI not completed, not in the garage     → move to garage_inventory (high)
    3. PDI completed, not showroom ready        → prepare at showroom_inventory (medium)
    4. showroom ready, still in car_inventory   → move to showroom_floor_1 (medium)
    5. anything else                            → no action (low)
    """

    NO_ACTION = 'No action needed'
    POST_SALE_LOCATIONS = frozenset({Location.SOLD, Location.SHIPPED})

    def __init__(self, registry: LocationRegistry = DEFAULT_REGISTRY):
        self.registry = registry

    def _closed(self, location) -> bool:
        if location in self.POST_SALE_LOCATIONS:
            return True
        return location in self.registry and self.registry.is_terminal(location)

    def _suggest(self, current, action, target, priority) -> Recommendation:
        return Recommendation(
            action=action,
            location=target,
            priority=priority,
            reachable=self.registry.is_reachable(current, target),
        )

    def recommend(self, entity: Any) -> Recommendation:
        current = field_value(entity, 'currentLocation')
        pdi_completed = bool(field_value(entity, 'pdiCompleted'))
        showroom_ready = bool(field_value(entity, 'showroomReady'))

        if self._closed(current):
            return Recommendation(self.NO_ACTION, current, Priority.LOW)

        if not pdi_completed and current != Location.GARAGE_INVENTORY:
            return self._suggest(current, 'Move to Garage for PDI', Location.GARAGE_INVENTORY, Priority.HIGH)

        if pdi_completed and not showroom_ready:
            return self._suggest(current, 'Prepare for Showroom', Location.SHOWROOM_INVENTORY, Priority.MEDIUM)

        if showroom_ready and current == Location.CAR_INVENTORY:
            return self._suggest(current, 'Move to Showroom Display', Location.SHOWROOM_FLOOR_1, Priority.MEDIUM)

        return Recommendation(self.NO_ACTION, current, Priority.LOW)
