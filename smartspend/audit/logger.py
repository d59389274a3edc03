"""
Audit Logger

DESIGN DECISION: Every write to the entity store is logged.
This provides:
1. Complete traceability
2. Debugging capability
3. A history the user can inspect

The audit logger:
- Never raises (a logging failure must not break a mutation)
- Keeps a bounded in-memory history of recent events
- Supports correlation IDs to trace related events
"""

import logging
from collections import deque
from typing import Optional
from uuid import UUID, uuid4

import structlog

from smartspend.models.audit import AuditEvent, AuditEventBuilder


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through stdlib logging at `level`."""
    logging.basicConfig(format="%(message)s", level=level.upper())
    logging.getLogger("smartspend").setLevel(level.upper())


class AuditLogger:
    """
    Central audit logging service.

    Logs events to:
    1. Structured local log (for debugging)
    2. An in-memory ring buffer (for the UI and tests)
    """

    def __init__(self, history_size: int = 500):
        """
        Initialize audit logger.

        Args:
            history_size: How many recent events to keep in memory.
        """
        self._logger = structlog.get_logger("smartspend.audit")
        self._history: deque[AuditEvent] = deque(maxlen=history_size)

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the local log write failed.
        """
        self._history.append(event)
        log_dict = event.to_log_dict()

        try:
            if event.severity.value in ("error", "critical"):
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception:
            # Logging must never break the caller
            return False

        return True

    def recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Most recent events, newest first."""
        events = list(self._history)
        events.reverse()
        return events[:limit]

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        self.log(event)

    def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., receipt scan).
    Pass it through all subsequent operations.
    """
    return uuid4()
