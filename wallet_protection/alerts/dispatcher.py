"""Tiered alert creation, bounded alert log and notification fan-out."""

import random
import string
import threading
from collections import deque
from datetime import timedelta
from typing import Any, Optional, Union

import httpx
import structlog

from ..models import AlertLevel, AlertRecord, AlertType, Clock, utcnow

logger = structlog.get_logger()

_ID_ALPHABET = string.digits + string.ascii_lowercase


class WebhookNotifier:
    """POST alerts as JSON to an operator webhook (Slack relay, dashboard, ...)."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.url = url
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def send(self, audience: str, alert: AlertRecord) -> bool:
        payload = {"audience": audience, "alert": alert.to_dict()}
        try:
            response = await self.client.post(self.url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Webhook notification failed", audience=audience, alert_id=alert.id, error=str(e))
            return False
        return True

    async def close(self):
        await self.client.aclose()


class AlertDispatcher:
    """
    Operator-facing notifications at four levels.

    Alerts live in a single newest-first log capped at MAX_ALERTS; the
    oldest entry is evicted silently on overflow. HIGH risk alerts are
    forwarded to admins and judicial freeze requests to judges.
    """

    MAX_ALERTS = 1000
    DEFAULT_LIMIT = 50
    STATS_WINDOW = timedelta(hours=24)

    def __init__(self, notifier: Optional[WebhookNotifier] = None, clock: Clock = utcnow):
        self.notifier = notifier
        self.clock = clock
        self.alerts: deque[AlertRecord] = deque(maxlen=self.MAX_ALERTS)
        self._lock = threading.Lock()

    async def send_high_risk_alert(self, wallet: str, score: int, patterns: list[str]) -> AlertRecord:
        """Score >= 80."""
        alert = self._create(
            AlertLevel.HIGH, AlertType.RISK_SCORE, wallet,
            f"High risk detected: score {score}",
            {"score": score, "patterns": list(patterns)}
        )
        logger.error("HIGH RISK ALERT", wallet=wallet, score=score)
        await self._notify("admins", alert)
        return alert

    async def send_medium_risk_alert(self, wallet: str, score: int, patterns: list[str]) -> AlertRecord:
        """Score 50-79."""
        alert = self._create(
            AlertLevel.MEDIUM, AlertType.RISK_SCORE, wallet,
            f"Medium risk detected: score {score}",
            {"score": score, "patterns": list(patterns)}
        )
        logger.warning("MEDIUM RISK", wallet=wallet, score=score)
        return alert

    async def send_low_risk_alert(self, wallet: str, score: int, patterns: list[str]) -> AlertRecord:
        """Score 30-49."""
        alert = self._create(
            AlertLevel.LOW, AlertType.RISK_SCORE, wallet,
            f"Low risk detected: score {score}",
            {"score": score, "patterns": list(patterns)}
        )
        logger.info("LOW RISK", wallet=wallet, score=score)
        return alert

    async def send_manual_lock_notification(self, wallet: str, reason: str, locked_by: str) -> AlertRecord:
        alert = self._create(
            AlertLevel.HIGH, AlertType.MANUAL_LOCK, wallet,
            f"Manual lock by {locked_by}",
            {"reason": reason, "locked_by": locked_by}
        )
        logger.warning("MANUAL LOCK", wallet=wallet, locked_by=locked_by, reason=reason)
        return alert

    async def send_judicial_freeze_request(self, wallet: str, case_hash: str, requested_by: str) -> AlertRecord:
        alert = self._create(
            AlertLevel.CRITICAL, AlertType.JUDICIAL_FREEZE, wallet,
            f"Judicial freeze requested by {requested_by}",
            {"case_hash": case_hash, "requested_by": requested_by}
        )
        logger.error("JUDICIAL FREEZE REQUEST", wallet=wallet, requested_by=requested_by)
        await self._notify("judges", alert)
        return alert

    def _create(
        self,
        level: AlertLevel,
        alert_type: AlertType,
        wallet: str,
        message: str,
        details: dict[str, Any]
    ) -> AlertRecord:
        now = self.clock()
        alert = AlertRecord(
            id=self._generate_id(now),
            level=level,
            type=alert_type,
            wallet=wallet,
            message=message,
            details=details,
            timestamp=now
        )
        with self._lock:
            self.alerts.appendleft(alert)
        return alert

    async def _notify(self, audience: str, alert: AlertRecord):
        logger.info("Notification", audience=audience, level=alert.level.value, message=alert.message)
        if self.notifier is not None:
            await self.notifier.send(audience, alert)

    @staticmethod
    def _generate_id(now) -> str:
        suffix = "".join(random.choices(_ID_ALPHABET, k=9))
        return f"alert_{int(now.timestamp() * 1000)}_{suffix}"

    def get_alerts(
        self,
        level: Optional[Union[AlertLevel, str]] = None,
        type: Optional[Union[AlertType, str]] = None,
        wallet: Optional[str] = None,
        unacknowledged_only: bool = False,
        limit: Optional[int] = None
    ) -> list[AlertRecord]:
        """Filter the log (newest first). Invalid level/type raise ValueError."""
        level = AlertLevel(level) if level else None
        alert_type = AlertType(type) if type else None
        limit = limit or self.DEFAULT_LIMIT

        with self._lock:
            snapshot = list(self.alerts)

        filtered = [
            a for a in snapshot
            if (level is None or a.level == level)
            and (alert_type is None or a.type == alert_type)
            and (wallet is None or a.wallet == wallet)
            and (not unacknowledged_only or not a.acknowledged)
        ]
        return filtered[:limit]

    def acknowledge_alert(self, alert_id: str, acknowledged_by: str) -> bool:
        """Mark an alert acknowledged. Unknown ids are ignored."""
        with self._lock:
            for alert in self.alerts:
                if alert.id == alert_id:
                    alert.acknowledged = True
                    alert.acknowledged_by = acknowledged_by
                    alert.acknowledged_at = self.clock()
                    return True
        return False

    def get_stats(self) -> dict:
        cutoff = self.clock() - self.STATS_WINDOW
        with self._lock:
            snapshot = list(self.alerts)

        recent = [a for a in snapshot if a.timestamp > cutoff]
        by_level = {
            level.value.lower(): sum(1 for a in recent if a.level == level)
            for level in AlertLevel
        }

        return {
            "total": len(snapshot),
            "last_24_hours": {"total": len(recent), **by_level},
            "unacknowledged": sum(1 for a in snapshot if not a.acknowledged),
        }

    async def close(self):
        if self.notifier is not None:
            await self.notifier.close()
