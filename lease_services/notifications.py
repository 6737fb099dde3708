"""
TemplateNotificationGateway -- automated e-mails driven by trigger events.

Responsibility:
    Implements the ``NotificationGateway`` port.  Selects the active
    auto-send e-mail templates registered for a trigger event, renders
    their ``{{Variable}}`` placeholders and hands each rendered message to
    the injected ``EmailTransport``.

Architecture position:
    Services -- stateful infrastructure.  Reads and updates the
    ``EmailTemplateModel`` rows from ``lease_modules.masterdata.orm``.

Invariants enforced:
    - Only templates with ``is_active`` and ``auto_send`` are used.
    - ``usage_count`` and ``last_used_at`` change only for templates whose
      message reached the transport.
    - Placeholders without a matching variable are left in place.

Failure modes:
    - A transport error for one template is logged at WARNING and counted
      as unsent; the remaining templates are still delivered.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from lease_kernel.domain.clock import Clock, SystemClock
from lease_kernel.domain.gateways import (
    EmailRecipient,
    EmailTransport,
    NotificationResult,
    RenderedEmail,
)
from lease_kernel.logging_config import get_logger
from lease_modules.masterdata.orm import EmailTemplateModel

logger = get_logger("services.notifications")

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def render_template(text: str, variables: Mapping[str, Any]) -> str:
    """Replace ``{{Name}}`` placeholders with ``variables["Name"]``."""

    def _substitute(match: re.Match) -> str:
        name = match.group(1)
        if name not in variables or variables[name] is None:
            return match.group(0)
        return str(variables[name])

    return _PLACEHOLDER.sub(_substitute, text or "")


def _split_addresses(value: str | None, kind: str) -> list[EmailRecipient]:
    if not value:
        return []
    return [
        EmailRecipient(email=address.strip(), kind=kind)
        for address in re.split(r"[;,]", value)
        if address.strip()
    ]


class TemplateNotificationGateway:
    """Send automated e-mails through an ``EmailTransport``."""

    def __init__(
        self,
        session: Session,
        transport: EmailTransport,
        clock: Clock | None = None,
    ):
        self._session = session
        self._transport = transport
        self._clock = clock or SystemClock()

    def templates_for(self, trigger_event: str) -> list[EmailTemplateModel]:
        stmt = (
            select(EmailTemplateModel)
            .where(
                EmailTemplateModel.trigger_event == trigger_event,
                EmailTemplateModel.auto_send.is_(True),
                EmailTemplateModel.is_active.is_(True),
                EmailTemplateModel.is_deleted.is_(False),
            )
            .order_by(EmailTemplateModel.template_code)
        )
        return list(self._session.scalars(stmt))

    def send_automated_email(
        self,
        trigger_event: str,
        variables: Mapping[str, Any],
        recipients: Sequence[EmailRecipient] = (),
    ) -> NotificationResult:
        templates = self.templates_for(trigger_event)
        primary = list(recipients)
        if not primary and variables.get("CustomerEmail"):
            primary = [EmailRecipient(email=str(variables["CustomerEmail"]))]

        sent = 0
        for template in templates:
            if not primary:
                logger.warning(
                    "notification_without_recipients",
                    extra={
                        "trigger_event": trigger_event,
                        "template_code": template.template_code,
                    },
                )
                continue

            message = RenderedEmail(
                template_name=template.template_name,
                subject=render_template(template.subject_line, variables),
                body=render_template(template.email_body, variables),
                recipients=tuple(
                    primary
                    + _split_addresses(template.cc_emails, "cc")
                    + _split_addresses(template.bcc_emails, "bcc")
                ),
            )
            try:
                self._transport.send(message)
            except Exception:
                logger.warning(
                    "notification_transport_failed",
                    extra={
                        "trigger_event": trigger_event,
                        "template_code": template.template_code,
                    },
                    exc_info=True,
                )
                continue

            template.usage_count = (template.usage_count or 0) + 1
            template.last_used_at = self._clock.now()
            sent += 1

        self._session.flush()
        logger.info(
            "notification_sent",
            extra={
                "trigger_event": trigger_event,
                "sent_count": sent,
                "total_count": len(templates),
            },
        )
        return NotificationResult(
            trigger_event=trigger_event,
            sent_count=sent,
            total_count=len(templates),
        )
