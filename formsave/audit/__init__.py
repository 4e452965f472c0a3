"""
Form Audit Trail

Reference AuditLogger: per-session, append-only, JSON-lines backed.
"""

from .events import AuditEvent
from .logger import FormAuditLogger, read_audit_log

__all__ = [
    "AuditEvent",
    "FormAuditLogger",
    "read_audit_log",
]
