"""Settlement notification dispatch"""

import logging
from datetime import date
from typing import Dict, Sequence
from starquest_settlement.domain.models import (
    AuditStatus,
    Child,
    DeliveryResult,
    Family,
    NotificationOutcome,
    SettlementRecord,
)
from starquest_settlement.domain.notice import build_settlement_notice, resolve_recipient
from starquest_settlement.domain.ports import NotificationSender, UnitOfWorkFactory
from starquest_settlement.infrastructure.observability.metrics import notification_counter

SKIP_FEATURE_DISABLED = "feature_disabled"
SKIP_DISABLED_IN_PREFERENCES = "disabled_in_preferences"
SKIP_NO_RECIPIENT = "no_recipient"
SKIP_NO_SETTLEMENTS = "no_settlements"


class SettlementNotifier:
    """Sends a family's settlement notice; never raises"""

    def __init__(self, sender: NotificationSender, uow_factory: UnitOfWorkFactory, enabled: bool = True):
        self.sender = sender
        self.uow_factory = uow_factory
        self.enabled = enabled

    def _skipped(self, family: Family, reason: str, recipient: str | None = None) -> NotificationOutcome:
        logging.warning(f"Settlement notice skipped: {reason} (family: {family.name})")
        notification_counter.labels(status="skipped").inc()
        return NotificationOutcome(status=AuditStatus.SKIPPED, recipient=recipient, skipped_reason=reason)

    async def notify(
        self,
        family: Family,
        records: Sequence[SettlementRecord],
        settlement_date: date,
        children: Dict[str, Child] | None = None,
    ) -> NotificationOutcome:
        if not self.enabled or not self.sender.is_available():
            return self._skipped(family, SKIP_FEATURE_DISABLED)

        try:
            with self.uow_factory() as uow:
                preferences = uow.families.get_preferences(family.id)
        except Exception as e:
            logging.error(f"Settlement notice failed for {family.name}: {e}")
            notification_counter.labels(status="failed").inc()
            return NotificationOutcome(status=AuditStatus.FAILED, error=str(e))

        if preferences and not preferences.settlement_email_enabled:
            return self._skipped(family, SKIP_DISABLED_IN_PREFERENCES)

        recipient = resolve_recipient(family, preferences)
        if not recipient:
            return self._skipped(family, SKIP_NO_RECIPIENT)

        if not records:
            return self._skipped(family, SKIP_NO_SETTLEMENTS, recipient)

        subject, body = build_settlement_notice(family, records, settlement_date, children)

        try:
            delivery = await self.sender.send(recipient, subject, body)
        except Exception as e:
            delivery = DeliveryResult(success=False, error=str(e))

        if not delivery.success:
            logging.error(f"Settlement notice failed for {family.name}: {delivery.error}")
            notification_counter.labels(status="failed").inc()
            return NotificationOutcome(status=AuditStatus.FAILED, recipient=recipient, error=delivery.error)

        notification_counter.labels(status="sent").inc()
        return NotificationOutcome(status=AuditStatus.SENT, recipient=recipient)
