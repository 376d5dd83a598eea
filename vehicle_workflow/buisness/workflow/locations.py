"""
Location registry for the vehicle workflow

LOCATION_TABLE is the single source of truth for the transition graph:
for every location it declares the legal next locations, the lifecycle steps a
vehicle may hold there and the fields a vehicle must carry to enter it.

Ordering is part of the data. `permitted_steps` is read left to right when a
target step has to be picked, so the first entry is the location's fallback
step. `required_fields` order is the order missing fields are reported in.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterator, Mapping, Optional, Tuple

from vehicle_workflow.buisness.workflow.errors import UnknownLocationError


class Location:
    """Named operational locations a vehicle can occupy"""

    NEW_ARRIVALS = 'new_arrivals'
    CAR_INVENTORY = 'car_inventory'
    GARAGE_INVENTORY = 'garage_inventory'
    SHOWROOM_FLOOR_1 = 'showroom_floor_1'
    SHOWROOM_FLOOR_2 = 'showroom_floor_2'
    SHOWROOM_INVENTORY = 'showroom_inventory'
    INVENTORY_FLOOR_2 = 'inventory_floor_2'
    INVENTORY_GARAGE = 'inventory_garage'
    REPAIRS = 'repairs'
    GARAGE_SCHEDULE = 'garage_schedule'
    QUALITY_CONTROL = 'quality_control'
    SOLD = 'sold'
    SHIPPED = 'shipped'

    SHOWROOM_FLOORS = frozenset({SHOWROOM_FLOOR_1, SHOWROOM_FLOOR_2})


class Step:
    """Lifecycle steps a vehicle can hold while at a location"""

    ARRIVAL = 'arrival'
    INITIAL_INSPECTION = 'initial_inspection'
    PDI_PENDING = 'pdi_pending'
    PDI_IN_PROGRESS = 'pdi_in_progress'
    PDI_COMPLETED = 'pdi_completed'
    PDI_FAILED = 'pdi_failed'
    REPAIR_NEEDED = 'repair_needed'
    REPAIR_IN_PROGRESS = 'repair_in_progress'
    REPAIR_COMPLETED = 'repair_completed'
    QUALITY_CHECK = 'quality_check'
    SHOWROOM_READY = 'showroom_ready'
    SHOWROOM_DISPLAY = 'showroom_display'
    TEST_DRIVE = 'test_drive'
    NEGOTIATION = 'negotiation'
    SOLD = 'sold'
    DELIVERY_PREP = 'delivery_prep'
    DELIVERED = 'delivered'

    ALL: Tuple[str, ...] = (
        ARRIVAL, INITIAL_INSPECTION,
        PDI_PENDING, PDI_IN_PROGRESS, PDI_COMPLETED, PDI_FAILED,
        REPAIR_NEEDED, REPAIR_IN_PROGRESS, REPAIR_COMPLETED,
        QUALITY_CHECK, SHOWROOM_READY, SHOWROOM_DISPLAY,
        TEST_DRIVE, NEGOTIATION, SOLD, DELIVERY_PREP, DELIVERED,
    )


@dataclass(frozen=True)
class LocationConfig:
    """Immutable configuration of a single location"""

    key: str
    name: str
    route: str
    allowed_next: FrozenSet[str]
    permitted_steps: Tuple[str, ...]
    required_fields: Tuple[str, ...]

    @property
    def is_terminal(self) -> bool:
        return not self.allowed_next


# Declaration order here is the order locations are listed and counted in.
LOCATION_TABLE: Tuple[Dict, ...] = (
    {
        'key': Location.NEW_ARRIVALS,
        'name': 'New Car Arrivals',
        'route': '/new-car-arrivals',
        'permitted_steps': (Step.ARRIVAL, Step.INITIAL_INSPECTION),
        'allowed_next': (Location.CAR_INVENTORY,),
        'required_fields': ('vinNumber', 'model', 'arrivalDate'),
    },
    {
        'key': Location.CAR_INVENTORY,
        'name': 'Car Inventory',
        'route': '/inventory',
        'permitted_steps': (Step.INITIAL_INSPECTION, Step.PDI_PENDING, Step.PDI_COMPLETED, Step.SHOWROOM_READY),
        'allowed_next': (Location.GARAGE_INVENTORY, Location.SHOWROOM_FLOOR_1, Location.SHOWROOM_FLOOR_2, Location.REPAIRS),
        'required_fields': ('vinNumber', 'model', 'price'),
    },
    {
        'key': Location.GARAGE_INVENTORY,
        'name': 'Garage Car Inventory',
        'route': '/garage-car-inventory',
        'permitted_steps': (Step.PDI_PENDING, Step.PDI_IN_PROGRESS, Step.PDI_COMPLETED, Step.PDI_FAILED, Step.REPAIR_NEEDED),
        # A car that passes PDI in the garage may go straight to a showroom floor
        'allowed_next': (
            Location.CAR_INVENTORY, Location.REPAIRS, Location.GARAGE_SCHEDULE,
            Location.SHOWROOM_FLOOR_1, Location.SHOWROOM_FLOOR_2,
        ),
        'required_fields': ('vinNumber', 'pdiStatus'),
    },
    {
        'key': Location.SHOWROOM_FLOOR_1,
        'name': 'Showroom Floor 1',
        'route': '/showroom-floor-1',
        'permitted_steps': (Step.SHOWROOM_DISPLAY, Step.TEST_DRIVE, Step.NEGOTIATION),
        'allowed_next': (Location.SHOWROOM_FLOOR_2, Location.SOLD),
        'required_fields': ('vinNumber', 'pdiCompleted', 'price'),
    },
    {
        'key': Location.SHOWROOM_FLOOR_2,
        'name': 'Showroom Floor 2',
        'route': '/showroom-floor-2',
        'permitted_steps': (Step.SHOWROOM_DISPLAY, Step.TEST_DRIVE, Step.NEGOTIATION),
        'allowed_next': (Location.SHOWROOM_FLOOR_1, Location.SOLD),
        'required_fields': ('vinNumber', 'pdiCompleted', 'price'),
    },
    {
        'key': Location.SHOWROOM_INVENTORY,
        'name': 'Showroom Inventory',
        'route': '/showroom-inventory',
        'permitted_steps': (Step.SHOWROOM_READY, Step.SHOWROOM_DISPLAY),
        'allowed_next': (Location.SHOWROOM_FLOOR_1, Location.SHOWROOM_FLOOR_2),
        'required_fields': ('vinNumber', 'displayStatus'),
    },
    {
        'key': Location.INVENTORY_FLOOR_2,
        'name': 'Inventory Floor 2',
        'route': '/inventory-floor-2',
        'permitted_steps': (Step.PDI_COMPLETED, Step.QUALITY_CHECK, Step.SHOWROOM_READY),
        'allowed_next': (Location.SHOWROOM_FLOOR_2, Location.SHOWROOM_INVENTORY),
        'required_fields': ('vinNumber', 'qualityStatus'),
    },
    {
        'key': Location.INVENTORY_GARAGE,
        'name': 'Inventory Garage',
        'route': '/inventory-garage',
        'permitted_steps': (Step.PDI_PENDING, Step.REPAIR_NEEDED, Step.REPAIR_IN_PROGRESS, Step.REPAIR_COMPLETED),
        'allowed_next': (Location.GARAGE_INVENTORY, Location.REPAIRS),
        'required_fields': ('vinNumber', 'repairStatus'),
    },
    {
        'key': Location.REPAIRS,
        'name': 'Repairs',
        'route': '/repairs',
        'permitted_steps': (Step.REPAIR_NEEDED, Step.REPAIR_IN_PROGRESS, Step.REPAIR_COMPLETED, Step.QUALITY_CHECK),
        'allowed_next': (Location.GARAGE_INVENTORY, Location.CAR_INVENTORY, Location.GARAGE_SCHEDULE),
        'required_fields': ('vinNumber', 'repairType', 'repairStatus'),
    },
    {
        'key': Location.GARAGE_SCHEDULE,
        'name': 'Garage Schedule',
        'route': '/garage-schedule',
        'permitted_steps': (Step.REPAIR_IN_PROGRESS, Step.PDI_IN_PROGRESS, Step.QUALITY_CHECK),
        'allowed_next': (Location.REPAIRS, Location.GARAGE_INVENTORY),
        'required_fields': ('vinNumber', 'scheduleDate', 'workType'),
    },
    {
        'key': Location.QUALITY_CONTROL,
        'name': 'Quality Control',
        'route': '/quality-control',
        'permitted_steps': (Step.QUALITY_CHECK, Step.PDI_COMPLETED, Step.REPAIR_COMPLETED),
        'allowed_next': (Location.CAR_INVENTORY, Location.SHOWROOM_INVENTORY),
        'required_fields': ('vinNumber', 'qualityStatus', 'inspector'),
    },
    {
        'key': Location.SOLD,
        'name': 'Sold',
        'route': '/sales',
        'permitted_steps': (Step.SOLD, Step.DELIVERY_PREP),
        'allowed_next': (Location.SHIPPED,),
        'required_fields': ('vinNumber', 'salePrice', 'customerInfo', 'saleDate'),
    },
    {
        'key': Location.SHIPPED,
        'name': 'Shipped',
        'route': '/shipping-eta',
        'permitted_steps': (Step.DELIVERED,),
        'allowed_next': (),
        'required_fields': ('vinNumber', 'deliveryDate', 'customerInfo'),
    },
)


class LocationRegistry:
    """
    Read-only lookup over the location table.

    Built once; the internal mapping is a MappingProxyType over frozen
    LocationConfig values so nothing can be changed after construction.
    """

    def __init__(self, table=LOCATION_TABLE):
        configs: Dict[str, LocationConfig] = {}
        for row in table:
            key = row['key']
            if key in configs:
                raise ValueError(f"Location declared twice: {key}")
            unknown_steps = set(row['permitted_steps']) - set(Step.ALL)
            if unknown_steps:
                raise ValueError(f"Location {key} permits unknown steps: {sorted(unknown_steps)}")
            if not row['permitted_steps']:
                raise ValueError(f"Location {key} must permit at least one step")
            configs[key] = LocationConfig(
                key=key,
                name=row['name'],
                route=row['route'],
                allowed_next=frozenset(row['allowed_next']),
                permitted_steps=tuple(row['permitted_steps']),
                required_fields=tuple(row['required_fields']),
            )

        dangling = {
            target
            for config in configs.values()
            for target in config.allowed_next
            if target not in configs
        }
        if dangling:
            raise ValueError(f"Transition table references undeclared locations: {sorted(dangling)}")

        self._configs: Mapping[str, LocationConfig] = MappingProxyType(configs)

    def __contains__(self, location) -> bool:
        return location in self._configs

    def __iter__(self) -> Iterator[LocationConfig]:
        return iter(self._configs.values())

    def __len__(self) -> int:
        return len(self._configs)

    def locations(self) -> Tuple[str, ...]:
        """All location keys in declaration order"""
        return tuple(self._configs)

    def get(self, location: str) -> LocationConfig:
        """
        Get the configuration for a location.

        Raises:
            UnknownLocationError: If the location is not declared. Callers
            holding user input should check reachability first.
        """
        try:
            return self._configs[location]
        except KeyError:
            raise UnknownLocationError(location) from None

    def is_reachable(self, from_location: str, to_location: str) -> bool:
        """Check if to_location is a direct successor of from_location"""
        config: Optional[LocationConfig] = self._configs.get(from_location)
        if config is None:
            return False
        return to_location in config.allowed_next

    def allowed_next(self, location: str) -> Tuple[str, ...]:
        """Legal destinations from a location, in declaration order"""
        config = self._configs.get(location)
        if config is None:
            return ()
        return tuple(key for key in self._configs if key in config.allowed_next)

    def is_terminal(self, location: str) -> bool:
        return self.get(location).is_terminal

    def display_name(self, location: str) -> str:
        """Human readable name, falling back to the raw key"""
        config = self._configs.get(location)
        return config.name if config else location

    def route(self, location: str) -> str:
        """UI route for the location's list view"""
        config = self._configs.get(location)
        return config.route if config else '/'


# Process-wide registry, loaded once at import
DEFAULT_REGISTRY = LocationRegistry()
