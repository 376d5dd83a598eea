from vehicle_workflow import db
from datetime import datetime, timezone
from vehicle_workflow.buisness.core.data_insertion_mixin import DataInsertionMixin


def utcnow():
    """Naive UTC timestamp, matching what SQLite DateTime columns round-trip"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class AuditedBase(db.Model, DataInsertionMixin):
    """Abstract base class for workflow tables with creation/update timestamps"""

    __abstract__ = True

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
