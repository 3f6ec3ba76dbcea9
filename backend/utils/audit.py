"""
Structured audit logging module for the device registrar.

This module provides an AuditLogger class that logs events to a dedicated 'audit' logger
in structured JSON format. It supports context-aware request_id propagation across async
calls using contextvars.ContextVar.

Key features:
- Async-safe request_id tracking via ContextVar
- Structured JSON output with ISO8601 timestamps
- One event per registration attempt and its outcome
"""

import json
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# Context variable for tracking request_id across async calls
_request_id_context: ContextVar[Optional[str]] = ContextVar(
    'request_id', default=None
)


class AuditLogger:
    """
    Structured audit logger for registration events.

    All events are written to a dedicated 'audit' logger in JSON format.
    """

    def __init__(self):
        """Initialize the AuditLogger with a dedicated 'audit' logger."""
        self.logger = logging.getLogger('audit')

    def set_request_id(self, request_id: str) -> None:
        """
        Set the request_id for the current context.

        Args:
            request_id: Unique identifier for the current request/operation
        """
        _request_id_context.set(request_id)

    def get_request_id(self) -> Optional[str]:
        """Get the current request_id from context, or None."""
        return _request_id_context.get()

    def log(
        self,
        action: str,
        actor: str,
        resource: str,
        resource_id: str,
        status: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Core method to log a structured audit event.

        Args:
            action: Type of action performed (e.g., 'REGISTER')
            actor: Agent or service performing the action
            resource: Type of resource affected (e.g., 'Device')
            resource_id: Unique identifier of the affected resource
            status: Result status (e.g., 'matched', 'created', 'rejected')
            details: Optional dict of additional context
        """
        event = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'action': action,
            'actor': actor,
            'resource': resource,
            'resource_id': resource_id,
            'status': status,
            'request_id': self.get_request_id(),
            'details': details or {},
        }
        self.logger.info(json.dumps(event))

    def log_registration(
        self,
        outcome: str,
        device_id: Optional[int] = None,
        device_name: Optional[str] = None,
        device_type: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        """
        Log the outcome of one registration attempt.

        Args:
            outcome: 'matched', 'created', 'rejected' or 'failed'
            device_id: Device the registration resolved to, if any
            device_name: Name of that device
            device_type: Reported device type tag
            reason: Reason code for rejected or failed registrations
        """
        details = {}
        if device_name:
            details['device_name'] = device_name
        if device_type:
            details['device_type'] = device_type
        if reason:
            details['reason'] = reason

        self.log(
            action='REGISTER',
            actor='agent',
            resource='Device',
            resource_id=str(device_id) if device_id is not None else '-',
            status=outcome,
            details=details,
        )


# Global audit logger instance for convenient import
audit = AuditLogger()
