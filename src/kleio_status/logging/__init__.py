"""Structured logging utilities."""

from .audit import (
    AUDIT_KINDS,
    AuditEvent,
    AuditKind,
    JsonlAuditLogger,
    event_kind,
    rpc_tool_name,
    sanitize_arguments,
    utc_timestamp,
)

__all__ = [
    "AUDIT_KINDS",
    "AuditEvent",
    "AuditKind",
    "JsonlAuditLogger",
    "event_kind",
    "rpc_tool_name",
    "sanitize_arguments",
    "utc_timestamp",
]
