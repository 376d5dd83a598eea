"""
Core models package for the vehicle workflow
"""

from .vehicle import Vehicle, LocationHistoryEntry
from .workflow_event import WorkflowEvent

__all__ = [
    'Vehicle',
    'LocationHistoryEntry',
    'WorkflowEvent',
]
