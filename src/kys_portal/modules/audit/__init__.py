"""
Audit Module

Append-only trail of application submissions, stage decisions, logins
and background job runs.

API Endpoints:
- GET /audit-logs - List entries (global admin)
"""

from .models import AuditAction, AuditCategory, AuditLog, AuditSeverity
from .router import router

__all__ = ["router", "AuditLog", "AuditAction", "AuditCategory", "AuditSeverity"]
