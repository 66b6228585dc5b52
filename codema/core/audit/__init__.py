from codema.core.audit.models import AuditLog
from codema.core.audit.service import AuditAction, create_audit_log, list_audit_entries

__all__ = ["AuditLog", "AuditAction", "create_audit_log", "list_audit_entries"]
