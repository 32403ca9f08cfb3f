"""Configuration and audit utilities."""

from .audit_trail import AuditAction, AuditEvent, AuditSink, AuditTrail, get_audit_trail
from .config import MPIConfig, default_config

__all__ = [
    'AuditAction',
    'AuditEvent',
    'AuditSink',
    'AuditTrail',
    'get_audit_trail',
    'MPIConfig',
    'default_config',
]
