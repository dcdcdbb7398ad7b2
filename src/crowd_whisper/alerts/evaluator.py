"""
Alert Evaluation
================

Threshold rules that turn a density sample into zero or one alert.

Rules:
    occupancy >= critical (90) -> density alert, severity 5
    occupancy >= high (80)     -> density alert, severity 3
    otherwise                  -> no alert

`evaluate_density` is a pure function of the sample and its zone. Used
alone it raises a new alert for EVERY qualifying sample, so a zone that
stays above 80% keeps producing alerts.

`AlertEvaluator` wraps it with an optional cooldown per (zone, severity):
when `cooldown_seconds` > 0, an alert is suppressed if the same zone
raised the same severity less than `cooldown_seconds` earlier (measured
on sample timestamps). The default cooldown of 0 disables suppression.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from crowd_whisper.models.output import Alert, AlertType, DensitySample
from crowd_whisper.models.zone import Zone


logger = logging.getLogger(__name__)


SEVERITY_CRITICAL = 5
SEVERITY_HIGH = 3


@dataclass
class AlertThresholds:
    """
    Occupancy thresholds (percent of capacity).

    Loaded from configuration file.
    """

    high: float = 80.0
    critical: float = 90.0

    def __post_init__(self) -> None:
        if self.high > self.critical:
            raise ValueError("high threshold must not exceed critical threshold")


def evaluate_density(
    sample: DensitySample,
    zone: Zone,
    thresholds: Optional[AlertThresholds] = None,
) -> Optional[Alert]:
    """
    Apply the density thresholds to a sample.

    Args:
        sample: Latest density sample for the zone
        zone: Zone the sample belongs to (its name is cited in the message)
        thresholds: Thresholds to apply (defaults to 80/90)

    Returns:
        A new active Alert, or None if occupancy is below both thresholds
    """
    th = thresholds or AlertThresholds()

    if sample.value >= th.critical:
        return Alert(
            type=AlertType.DENSITY,
            severity=SEVERITY_CRITICAL,
            affected_zones=[zone.id],
            message=f"Critical density level ({sample.value}%) in {zone.name}!",
            timestamp=sample.timestamp,
        )

    if sample.value >= th.high:
        return Alert(
            type=AlertType.DENSITY,
            severity=SEVERITY_HIGH,
            affected_zones=[zone.id],
            message=f"High density level ({sample.value}%) in {zone.name}.",
            timestamp=sample.timestamp,
        )

    return None


class AlertEvaluator:
    """
    Density alert evaluation with optional per-zone cooldown.

    Attributes:
        thresholds: Occupancy thresholds
        cooldown_seconds: Suppression window per (zone, severity); 0 disables
    """

    def __init__(
        self,
        thresholds: Optional[AlertThresholds] = None,
        cooldown_seconds: float = 0.0,
    ) -> None:
        if cooldown_seconds < 0:
            raise ValueError("cooldown_seconds must be non-negative")

        self.thresholds = thresholds or AlertThresholds()
        self.cooldown_seconds = cooldown_seconds

        self._last_raised: Dict[Tuple[str, int], float] = {}
        self._suppressed_count: int = 0

        logger.info(
            f"AlertEvaluator initialized: high={self.thresholds.high}, "
            f"critical={self.thresholds.critical}, cooldown={cooldown_seconds}s"
        )

    def evaluate(self, sample: DensitySample, zone: Zone) -> Optional[Alert]:
        """
        Evaluate a sample, applying the cooldown if enabled.

        Returns:
            Alert to emit, or None
        """
        alert = evaluate_density(sample, zone, self.thresholds)
        if alert is None or self.cooldown_seconds <= 0:
            return alert

        key = (zone.id, alert.severity)
        last = self._last_raised.get(key)
        if last is not None and sample.timestamp - last < self.cooldown_seconds:
            self._suppressed_count += 1
            return None

        self._last_raised[key] = sample.timestamp
        return alert

    @property
    def suppressed_count(self) -> int:
        """Number of alerts suppressed by the cooldown."""
        return self._suppressed_count

    def reset(self) -> None:
        """Forget cooldown state."""
        self._last_raised.clear()
        self._suppressed_count = 0
