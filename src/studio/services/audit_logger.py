"""Structured audit logger for credit, sign-in, and administrative events.

Emits structured log entries via structlog.  Every entry carries an
``audit: true`` flag so production log pipelines can filter on it easily.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog


log = structlog.get_logger()


class AuditLogger:
    """Structured audit logger for account events.

    All methods are synchronous -- they only emit log lines and perform
    no I/O beyond writing to the configured structlog sink.
    """

    # ------------------------------------------------------------------
    # Credit event
    # ------------------------------------------------------------------

    def log_credit_event(
        self,
        identifier: str,
        amount: int,
        txn_type: str,
        new_balance: int | None = None,
    ) -> None:
        """Log a balance change (spend, top_up)."""
        log.info(
            "audit_event",
            event_type="credit_event",
            timestamp=datetime.now(timezone.utc).isoformat(),
            identifier=identifier,
            amount=amount,
            txn_type=txn_type,
            new_balance=new_balance,
            audit=True,
        )

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def log_sign_in(self, identifier: str, role: str, registered: bool = False) -> None:
        log.info(
            "audit_event",
            event_type="registration" if registered else "sign_in",
            timestamp=datetime.now(timezone.utc).isoformat(),
            identifier=identifier,
            role=role,
            audit=True,
        )

    # ------------------------------------------------------------------
    # Administrative override
    # ------------------------------------------------------------------

    def log_admin_action(
        self,
        admin_identifier: str,
        action: str,
        target_identifier: str,
        **details,
    ) -> None:
        """Record a write made directly by the administrator.

        *details* are passed through verbatim (e.g. the new plan values).
        """
        log.info(
            "audit_event",
            event_type="admin_action",
            timestamp=datetime.now(timezone.utc).isoformat(),
            admin_identifier=admin_identifier,
            action=action,
            target_identifier=target_identifier,
            audit=True,
            **details,
        )


audit = AuditLogger()
