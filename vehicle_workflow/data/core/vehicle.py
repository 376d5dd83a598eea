import re

from sqlalchemy.ext.mutable import MutableDict
from sqlalchemy.orm import validates

from vehicle_workflow import db
from vehicle_workflow.data.core.audited_base import AuditedBase, utcnow

VIN_PATTERN = re.compile(r'^[A-HJ-NPR-Z0-9]{17}$')


class Vehicle(AuditedBase):
    """
    Vehicle record owned by the vehicle store.

    Location and step are changed only by the workflow MoveExecutor; the
    `version` column is SQLAlchemy's optimistic lock so a stale update fails
    with StaleDataError instead of overwriting a newer move.
    """
    __tablename__ = 'vehicles'

    # Column-backed names as the UI forms spell them
    COLUMN_FIELDS = {
        'vin': 'vin',
        'vinNumber': 'vin',
        'model': 'model',
        'currentLocation': 'current_location',
        'currentStep': 'current_step',
        'workflowStep': 'current_step',
        'lastMovedAt': 'last_moved_at',
        'lastMovedBy': 'last_moved_by',
    }

    id = db.Column(db.Integer, primary_key=True)
    vin = db.Column(db.String(17), unique=True, nullable=False, index=True)
    model = db.Column(db.String(120), nullable=True)

    current_location = db.Column(db.String(40), nullable=False, index=True)
    current_step = db.Column(db.String(40), nullable=False)

    # Open attribute bag: price, pdiCompleted, repairStatus, customerInfo, ...
    attributes = db.Column(MutableDict.as_mutable(db.JSON), nullable=False, default=dict)

    last_moved_at = db.Column(db.DateTime, nullable=True)
    last_moved_by = db.Column(db.String(120), nullable=True)

    version = db.Column(db.Integer, nullable=False)

    location_history = db.relationship(
        'LocationHistoryEntry',
        back_populates='vehicle',
        order_by='LocationHistoryEntry.position',
        cascade='all, delete-orphan',
    )

    __mapper_args__ = {'version_id_col': version}

    def __init__(self, **kwargs):
        kwargs.setdefault('attributes', {})
        if kwargs.get('vin'):
            kwargs['vin'] = kwargs['vin'].strip().upper()
        super().__init__(**kwargs)

    def __repr__(self):
        return f'<Vehicle {self.vin} @ {self.current_location}/{self.current_step}>'

    @validates('vin')
    def validate_vin(self, key, value):
        if self.vin is not None and value != self.vin:
            raise ValueError(f"VIN is immutable (vehicle {self.vin})")
        if not value or not VIN_PATTERN.match(value):
            raise ValueError(f"Invalid VIN {value!r}: expected 17 characters, no I, O or Q")
        return value

    def get_field(self, name):
        """Read a workflow field by its form name, from a column or the attribute bag"""
        column = self.COLUMN_FIELDS.get(name)
        if column is not None:
            return getattr(self, column)
        return (self.attributes or {}).get(name)

    def set_attribute(self, name, value):
        """Set one attribute bag entry; column-backed names are not writable here"""
        if name in self.COLUMN_FIELDS:
            raise ValueError(f"{name} is a column-backed field and cannot be set as an attribute")
        if self.attributes is None:
            self.attributes = {}
        self.attributes[name] = value


class LocationHistoryEntry(AuditedBase):
    """Per-vehicle mirror of the workflow event log, one row per committed move"""
    __tablename__ = 'vehicle_location_history'

    id = db.Column(db.Integer, primary_key=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey('vehicles.id'), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)
    event_id = db.Column(db.String(40), nullable=False)

    location = db.Column(db.String(40), nullable=False)
    step = db.Column(db.String(40), nullable=False)
    moved_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    moved_by = db.Column(db.String(120), nullable=False)
    reason = db.Column(db.Text, nullable=True)

    vehicle = db.relationship('Vehicle', back_populates='location_history')

    __table_args__ = (
        db.UniqueConstraint('vehicle_id', 'position', name='uq_location_history_position'),
    )

    def __repr__(self):
        return f'<LocationHistoryEntry {self.position}: {self.location}/{self.step}>'
