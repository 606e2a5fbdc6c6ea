"""
Audit Logging System.
Created: 2026-10-05

Append-only JSONL record of authorization events: client registration, code
issuance, token issuance, refresh, revocation and failed grants. Entries name
clients and users, never raw codes, tokens or secrets.
"""

import json
import logging
import uuid
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from keyhouse.config import get_config_dir, get_settings

logger = logging.getLogger("audit")


class AuditSeverity(str, Enum):
    INFO = "info"  # Normal operation (e.g. token issued)
    WARNING = "warning"  # Rejected request (e.g. bad client secret)
    ALERT = "alert"  # Possible attack (e.g. code replay)


@dataclass
class AuditEvent:
    """A single audit log entry."""

    id: str
    timestamp: str
    severity: AuditSeverity
    actor: str  # client_id, or "anonymous"
    action: str  # e.g. "token_issued", "grant_failed"
    target: str  # e.g. "user:42", "grant:authorization_code"
    status: str  # "success", "error"
    context: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        severity: AuditSeverity,
        actor: str,
        action: str,
        target: str,
        status: str,
        **context: Any,
    ) -> "AuditEvent":
        return cls(
            id=str(uuid.uuid4()),
            timestamp=datetime.now(tz=UTC).isoformat(),
            severity=severity,
            actor=actor,
            action=action,
            target=target,
            status=status,
            context=context,
        )


class AuditLogger:
    """
    Append-only audit logger.
    Writes to <config_dir>/audit.jsonl in JSONL format.
    """

    def __init__(self, log_path: Path | None = None, enabled: bool = True):
        self.log_path = log_path or get_config_dir() / "audit.jsonl"
        self.enabled = enabled
        self._callbacks: list[Callable[[dict], None]] = []

    def on_log(self, callback: Callable[[dict], None]) -> None:
        """Register a callback to be called after each audit log write."""
        self._callbacks.append(callback)

    def log(self, event: AuditEvent) -> None:
        """Write an event to the audit log."""
        if not self.enabled:
            return
        try:
            event_dict = asdict(event)
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(event_dict) + "\n")
            for cb in self._callbacks:
                try:
                    cb(event_dict)
                except Exception:
                    logger.debug("Audit callback failed", exc_info=True)
        except Exception as e:
            # Fallback to system logger if audit fails (critical failure)
            logger.critical(f"FAILED TO WRITE AUDIT LOG: {e} | Event: {event.action}")

    def log_oauth_event(
        self,
        action: str,
        actor: str,
        target: str,
        status: str = "success",
        severity: AuditSeverity = AuditSeverity.INFO,
        **context: Any,
    ) -> str:
        """Helper to log an authorization event."""
        event = AuditEvent.create(
            severity=severity,
            actor=actor or "anonymous",
            action=action,
            target=target,
            status=status,
            **context,
        )
        self.log(event)
        return event.id


# Singleton
_audit_logger: AuditLogger | None = None


def get_audit_logger() -> AuditLogger:
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger(enabled=get_settings().audit_enabled)
    return _audit_logger


def reset_audit_logger() -> None:
    """Reset singleton (for testing)."""
    global _audit_logger
    _audit_logger = None
