"""
VehicleStore - lookup/update interface over the vehicles table

The workflow reads vehicles through this store and never queries the model
directly, so the persistent record store stays a replaceable collaborator.
Location and step are not writable here; only MoveExecutor changes them.
"""

from typing import Any, Dict, Optional

from sqlalchemy import func

from vehicle_workflow import db
from vehicle_workflow.buisness.workflow.locations import DEFAULT_REGISTRY, LocationRegistry
from vehicle_workflow.data.core.vehicle import Vehicle
from vehicle_workflow.utils.logger import get_logger
from vehicle_workflow.utils.logging_sanitizer import sanitize_dict

logger = get_logger("vehicle_workflow.domain.core.vehicle_store")


class VehicleStore:
    """Row-store collaborator for Vehicle records"""

    def __init__(self, registry: LocationRegistry = DEFAULT_REGISTRY):
        self.registry = registry

    @staticmethod
    def normalize_vin(vin: str) -> str:
        return (vin or '').strip().upper()

    def get_by_vin(self, vin: str) -> Optional[Vehicle]:
        """Return the vehicle or None when the VIN is unknown"""
        return Vehicle.query.filter_by(vin=self.normalize_vin(vin)).first()

    def register(
        self,
        vin: str,
        location: str,
        step: str,
        model: Optional[str] = None,
        attributes: Optional[Dict[str, Any]] = None,
        commit: bool = True,
    ) -> Vehicle:
        """
        Create a vehicle already holding its initial location and step.

        Args:
            vin: 17-character VIN
            location: Initial location (must be declared in the registry)
            step: Initial step (must be permitted at the location)
            model: Model name
            attributes: Initial attribute bag
            commit: Whether to commit the transaction

        Raises:
            UnknownLocationError: If the location is not declared
            ValueError: If the step is not permitted there, or the VIN is invalid
        """
        config = self.registry.get(location)
        if step not in config.permitted_steps:
            raise ValueError(f"Step {step} is not permitted at {location}")

        vehicle = Vehicle(
            vin=vin,
            model=model,
            current_location=location,
            current_step=step,
            attributes=dict(attributes or {}),
        )
        try:
            db.session.add(vehicle)
            if commit:
                db.session.commit()
            else:
                db.session.flush()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error registering vehicle {vin}: {e}")
            raise

        logger.info(f"Registered vehicle {vehicle.vin} at {location}/{step}")
        return vehicle

    def update_attributes(self, vin: str, commit: bool = True, **attributes) -> Optional[Vehicle]:
        """
        Merge attribute bag values (pdiCompleted, price, ...) into a vehicle.

        Returns:
            The updated vehicle, or None if the VIN is unknown
        """
        vehicle = self.get_by_vin(vin)
        if vehicle is None:
            return None

        for name, value in attributes.items():
            vehicle.set_attribute(name, value)

        try:
            if commit:
                db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error updating vehicle {vin}: {e}")
            raise

        logger.debug(f"Updated attributes for {vehicle.vin}: {sanitize_dict(attributes)}")
        return vehicle

    def count_by_location(self) -> Dict[str, int]:
        """Vehicle counts for every declared location, zero-filled"""
        rows = (
            db.session.query(Vehicle.current_location, func.count(Vehicle.id))
            .group_by(Vehicle.current_location)
            .all()
        )
        counts = {location: 0 for location in self.registry.locations()}
        for location, total in rows:
            counts[location] = total
        return counts
