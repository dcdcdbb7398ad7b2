"""
Control Command Schema
======================

Commands that drive the simulator and alert lifecycle.

Input Contract:
    {"type": "start-simulation"}
    {"type": "stop-simulation"}
    {"type": "add-crowd", "zone_id": "main-stage", "count": 50}
    {"type": "remove-crowd", "zone_id": "main-stage", "count": 20}
    {"type": "trigger-emergency", "zone_id": "main-stage"}
    {"type": "acknowledge-alert", "alert_id": "5f0c..."}

Commands that need a zone or alert id are rejected at validation time
when the id is missing. An id that does not exist is NOT a validation
error; the engine treats it as a no-op.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class CommandType(str, Enum):
    """Supported control commands."""

    START_SIMULATION = "start-simulation"
    STOP_SIMULATION = "stop-simulation"
    ADD_CROWD = "add-crowd"
    REMOVE_CROWD = "remove-crowd"
    TRIGGER_EMERGENCY = "trigger-emergency"
    ACKNOWLEDGE_ALERT = "acknowledge-alert"


_NEEDS_ZONE = {
    CommandType.ADD_CROWD,
    CommandType.REMOVE_CROWD,
    CommandType.TRIGGER_EMERGENCY,
}


class ControlCommand(BaseModel):
    """
    Validated control command.

    Attributes:
        type: Command type
        zone_id: Target zone (crowd and emergency commands)
        count: Number of devices (crowd commands)
        alert_id: Target alert (acknowledge-alert)
    """

    type: CommandType = Field(..., description="Command type")
    zone_id: Optional[str] = Field(default=None, description="Target zone id")
    count: int = Field(default=0, ge=0, description="Number of devices")
    alert_id: Optional[str] = Field(default=None, description="Target alert id")

    @model_validator(mode="after")
    def check_targets(self) -> "ControlCommand":
        if self.type in _NEEDS_ZONE and not self.zone_id:
            raise ValueError(f"{self.type.value} requires zone_id")
        if self.type == CommandType.ACKNOWLEDGE_ALERT and not self.alert_id:
            raise ValueError("acknowledge-alert requires alert_id")
        return self
