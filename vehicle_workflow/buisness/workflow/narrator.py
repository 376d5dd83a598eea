"""
WorkflowNarrator - message composer for vehicle workflow events

Keeps log lines and notification texts consistent across the move path.
Separates narrative formatting from transition logic.
"""

from typing import Optional


class WorkflowNarrator:
    """
    Composes human readable messages for workflow events.

    Location names come from the registry so texts match the UI labels.
    """

    def __init__(self, registry):
        self.registry = registry

    def _name(self, location: str) -> str:
        return self.registry.display_name(location)

    def vehicle_moved(self, vin: str, model: Optional[str], to_location: str) -> str:
        """Text for a committed move"""
        label = model or 'Vehicle'
        return f"{label} (VIN: {vin}) moved to {self._name(to_location)}"

    def location_changed(self, from_location: str, to_location: str, from_step: str, to_step: str,
                         reason: Optional[str] = None) -> str:
        """Text for the location history / audit summary"""
        comment = (
            f"Location changed: {self._name(from_location)} ({from_step}) → "
            f"{self._name(to_location)} ({to_step})"
        )
        if reason:
            comment += f" | Reason: {reason}"
        return comment

    def move_rejected(self, vin: str, error) -> str:
        """Text for a rejected move"""
        return f"Move rejected for {vin}: {error}"

    @staticmethod
    def pdi_slot_requested(vin: str) -> str:
        return f"Assigning {vin} to next available PDI slot"

    def showroom_display_updated(self, vin: str, location: str) -> str:
        return f"Updating showroom display for {vin} in {self._name(location)}"

    @staticmethod
    def showroom_ready(vin: str) -> str:
        return f"{vin} marked showroom ready"

    @staticmethod
    def repair_scheduled(vin: str) -> str:
        return f"Scheduling repair for {vin}"

    @staticmethod
    def sale_completed(vin: str) -> str:
        return f"Triggering sale completion actions for {vin}"
