"""Declarative audits: definitions, file loading and the Playwright runner."""

from .definitions import BUILTIN_AUDITS, Audit, LinkCheck, builtin_audits
from .manager import AuditManager
from .runner import AuditRunner

__all__ = ["Audit", "LinkCheck", "BUILTIN_AUDITS", "builtin_audits", "AuditManager", "AuditRunner"]
