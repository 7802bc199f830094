"""Security event logging for the step-up flow.

Events go to a dedicated ``security`` logger, separate from application logs,
so they can be routed to security monitoring. Secrets and codes are never
part of an event.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID


class SecurityEventType(str, Enum):
    """Types of security events that are logged."""

    # Provisioning
    STEP_UP_SECRET_ISSUED = "step_up_secret_issued"
    STEP_UP_SECRET_REUSED = "step_up_secret_reused"

    # Verification
    STEP_UP_VERIFIED = "step_up_verified"
    STEP_UP_VERIFY_FAILED = "step_up_verify_failed"
    STEP_UP_SESSION_EXPIRED = "step_up_session_expired"

    # Password change gate
    STEP_UP_REQUIRED = "step_up_required"
    STEP_UP_VERIFICATION_EXPIRED = "step_up_verification_expired"
    PASSWORD_CHANGED = "password_changed"


security_logger = logging.getLogger("security")


def log_security_event(
    event_type: SecurityEventType,
    user_id: UUID | str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> None:
    """Log a security event.

    Args:
        event_type: The type of security event
        user_id: The ID of the user the event concerns
        ip_address: The client IP address
        user_agent: The client user agent
        details: Additional event-specific details
        success: Whether the operation succeeded
    """
    event_data: dict[str, Any] = {
        "event_type": event_type.value,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "success": success,
        "actor": {
            "user_id": str(user_id) if user_id else None,
            "ip_address": ip_address,
            "user_agent": user_agent,
        },
    }

    if details:
        event_data["details"] = details

    if success:
        security_logger.info(
            f"Security event: {event_type.value}",
            extra={"security_event": event_data},
        )
    else:
        security_logger.warning(
            f"Security event (failed): {event_type.value}",
            extra={"security_event": event_data},
        )
