"""
Generic data mixin for SQLAlchemy models
Provides to_dict for notification payloads and audit event exports
"""

from datetime import datetime
from sqlalchemy import inspect


class DataInsertionMixin:
    """
    Mixin that provides generic dictionary conversion for SQLAlchemy models

    This mixin adds:
    - to_dict(): Convert model instance to dictionary
    """

    def to_dict(self, include_audit_fields=True):
        """
        Convert model instance to dictionary

        Args:
            include_audit_fields (bool): Whether to include created_at/updated_at

        Returns:
            dict: Dictionary representation of the model, keyed by attribute name
        """
        result = {}

        mapper = inspect(self.__class__)

        for attr in mapper.column_attrs:
            if not include_audit_fields and attr.key in ['created_at', 'updated_at']:
                continue

            value = getattr(self, attr.key)

            if isinstance(value, datetime):
                result[attr.key] = value.isoformat()
            elif isinstance(value, dict):
                result[attr.key] = dict(value)
            else:
                result[attr.key] = value

        return result
