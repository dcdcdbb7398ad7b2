"""
Engine Output Models
====================

This module defines everything the engine emits to the output sink.

The output is structured into two event kinds:
    1. density_update: one DensitySample per matched reading
    2. alert: zero or one Alert per matched reading

Output Contract:
    {
        "event": "density_update",
        "data": {
            "zone_id": "main-stage",
            "timestamp": 1770500938.284,
            "value": 85.0,
            "trend": "increasing"
        }
    }

    {
        "event": "alert",
        "data": {
            "id": "5f0c...",
            "type": "density",
            "severity": 3,
            "affected_zones": ["main-stage"],
            "status": "active",
            "message": "High density level (85.0%) in Main Stage.",
            "timestamp": 1770500938.284
        }
    }

Design Rules:
    - DensitySample is produced per ingestion and never persisted by the engine
    - Alert ownership passes to the alert store as soon as it is created
    - Delivery is at-least-once with no cross-zone ordering guarantee
"""

import uuid
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field


class Trend(str, Enum):
    """
    Direction of occupancy change in a zone.

    Attributes:
        INCREASING: Recent mean exceeds the prior mean by more than the threshold
        DECREASING: Recent mean is below the prior mean by more than the threshold
        STABLE: Anything else, including insufficient history
    """

    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class AlertType(str, Enum):
    """Category of an alert."""

    DENSITY = "density"
    MOVEMENT = "movement"
    SOUND = "sound"
    EMERGENCY = "emergency"


class AlertStatus(str, Enum):
    """Lifecycle status of an alert."""

    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class DensitySample(BaseModel):
    """
    Occupancy of one zone at one instant.

    Attributes:
        zone_id: Zone the sample belongs to
        timestamp: Timestamp of the reading that produced the sample
        value: Occupancy percent of capacity (one decimal place)
        trend: Trend label derived from recent occupancy history
    """

    zone_id: str = Field(
        ...,
        description="Zone the sample belongs to",
    )

    timestamp: float = Field(
        ...,
        gt=0,
        description="UNIX timestamp of the triggering reading",
    )

    value: float = Field(
        ...,
        ge=0.0,
        description="Occupancy percent of zone capacity",
    )

    trend: Trend = Field(
        default=Trend.STABLE,
        description="increasing, decreasing or stable",
    )


class Alert(BaseModel):
    """
    Threshold alert raised for one or more zones.

    Attributes:
        id: Unique alert identifier
        type: Alert category
        severity: 1 (informational) to 5 (critical)
        affected_zones: Ids of the zones the alert refers to
        status: Lifecycle status
        message: Human-readable description
        timestamp: UNIX timestamp when the alert was raised
    """

    id: str = Field(
        default_factory=lambda: uuid.uuid4().hex,
        description="Unique alert identifier",
    )

    type: AlertType = Field(
        ...,
        description="Alert category",
    )

    severity: int = Field(
        ...,
        ge=1,
        le=5,
        description="Severity from 1 (lowest) to 5 (critical)",
    )

    affected_zones: List[str] = Field(
        ...,
        min_length=1,
        description="Zone ids affected by this alert",
    )

    status: AlertStatus = Field(
        default=AlertStatus.ACTIVE,
        description="Lifecycle status",
    )

    message: str = Field(
        ...,
        description="Human-readable description",
    )

    timestamp: float = Field(
        ...,
        gt=0,
        description="UNIX timestamp when the alert was raised",
    )


class AlertUpdate(BaseModel):
    """Status change of an existing alert."""

    id: str
    status: AlertStatus


class OutputEvent(BaseModel):
    """Envelope broadcast to every output subscriber."""

    event: Literal["density_update", "alert", "alert_updated"]
    data: Union[DensitySample, Alert, AlertUpdate]


class IngestResult(BaseModel):
    """Result of ingesting one reading that matched a zone."""

    sample: DensitySample
    alert: Optional[Alert] = None
