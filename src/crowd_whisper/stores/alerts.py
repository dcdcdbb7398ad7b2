"""
Alert Store
===========

Append-only sink for alerts raised by the engine.

Interface:
    AlertStore.create_alert(alert) -> Alert

The engine hands every alert to the store as soon as it is created and
keeps no reference to it afterwards. A failing store must not stop the
engine from emitting the density sample; the engine logs the failure and
carries on.

Implementations:
    - InMemoryAlertStore: Keeps alerts in memory, supports acknowledge/resolve
"""

import logging
from typing import Dict, List, Optional, Protocol

from crowd_whisper.models.output import Alert, AlertStatus


logger = logging.getLogger(__name__)


class AlertStore(Protocol):
    """Protocol for alert stores."""

    def create_alert(self, alert: Alert) -> Alert:
        """Persist an alert and return the stored copy."""
        ...


class InMemoryAlertStore:
    """
    Alert store backed by a dict.

    Attributes:
        max_alerts: Oldest alerts are discarded beyond this many (0 = unlimited)
    """

    def __init__(self, max_alerts: int = 10_000) -> None:
        if max_alerts < 0:
            raise ValueError("max_alerts must be >= 0")

        self.max_alerts = max_alerts
        self._alerts: Dict[str, Alert] = {}

    def create_alert(self, alert: Alert) -> Alert:
        self._alerts[alert.id] = alert

        if self.max_alerts and len(self._alerts) > self.max_alerts:
            oldest = next(iter(self._alerts))
            del self._alerts[oldest]

        return alert

    def get(self, alert_id: str) -> Optional[Alert]:
        return self._alerts.get(alert_id)

    def list_alerts(self, status: Optional[AlertStatus] = None) -> List[Alert]:
        """List alerts, oldest first, optionally filtered by status."""
        alerts = list(self._alerts.values())
        if status is not None:
            alerts = [a for a in alerts if a.status == status]
        return alerts

    def update_status(self, alert_id: str, status: AlertStatus) -> Optional[Alert]:
        """
        Change the status of an alert.

        Returns:
            The updated alert, or None if the id is unknown
        """
        alert = self._alerts.get(alert_id)
        if alert is None:
            return None

        updated = alert.model_copy(update={"status": status})
        self._alerts[alert_id] = updated
        logger.info(f"Alert {alert_id} -> {status.value}")
        return updated
