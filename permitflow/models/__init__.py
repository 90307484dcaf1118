from .workflow_history import WorkflowHistoryEntry
from .application import Application, BuildingApplication, OccupancyApplication
from .document import Document
from .payment import Payment
from .audit_log import AuditLog

__all__ = [
    'WorkflowHistoryEntry', 'Application', 'BuildingApplication', 'OccupancyApplication',
    'Document', 'Payment', 'AuditLog',
]
