"""
Structured lifecycle logging.

Fields:
- component (polling / shutdown / database / membership / verification / admin)
- operation
- correlation_id (optional: update id, callback query id, user id)
- outcome (success | ignored | failed | cancelled)
- reason (optional, short, non-PII)

Never log secrets or full payloads.
"""
from logging import Logger
from typing import Optional


def log_event(
    logger: Logger,
    *,
    component: str,
    operation: str,
    outcome: str,
    correlation_id: Optional[str] = None,
    reason: Optional[str] = None,
    level: str = "info",
) -> None:
    """
    Emit a structured log event.

    The fields are attached as ``extra`` and repeated in the message text so they
    stay visible with the plain formatter.
    """
    extra: dict = {
        "component": component,
        "operation": operation,
        "outcome": outcome,
    }
    parts = [f"{component} {operation} outcome={outcome}"]
    if correlation_id is not None:
        extra["correlation_id"] = str(correlation_id)
        parts.append(f"correlation_id={correlation_id}")
    if reason is not None:
        extra["reason"] = reason
        parts.append(f"reason={reason}")

    log_method = getattr(logger, level.lower(), logger.info)
    log_method(" ".join(parts), extra=extra)
