"""
Crowd Simulator
===============

Synthetic load generator that drives the engine without real sensors.

The simulator owns a population of synthetic devices. While running it
advances every device on a fixed interval and emits one SensorReading per
device per tick through the `on_reading` callback, which feeds the same
ingestion entry point real readings use.

Movement:
    - Normal: independent random walk, each axis displaced by
      (u - 0.5) * step_degrees * movement_speed with u ~ U[0, 1)
    - Emergency: a device picked by `trigger_emergency` moves radially
      away from the zone's epicenter at movement_speed *
      emergency_speed_multiplier for emergency_duration_ticks ticks, then
      resumes the random walk

Placement:
    New devices are placed uniformly inside the zone's axis-aligned
    bounding box. For non-rectangular zones a device can land outside the
    ring, which lowers simulated occupancy for that zone. This is
    acceptable for load testing and deliberately not corrected.

Example:
    simulator = CrowdSimulator(SimulationConfig(device_count=200))
    simulator.start(zones, on_reading=engine.submit)
    ...
    await simulator.shutdown()
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np

from crowd_whisper.geometry.regions import bounding_box, point_in_ring, ring_centroid
from crowd_whisper.models.reading import Acceleration, Location, Motion, SensorReading
from crowd_whisper.models.zone import Coordinate, Zone


logger = logging.getLogger(__name__)


ReadingCallback = Callable[[SensorReading], object]


@dataclass
class SimulationConfig:
    """
    Simulator parameters.

    Loaded from configuration file.
    """

    device_count: int = 100
    update_interval_seconds: float = 1.0
    movement_speed: float = 1.5
    step_degrees: float = 0.0001

    # Emergency behavior
    emergency_fraction: float = 0.5
    emergency_speed_multiplier: float = 5.0
    emergency_duration_ticks: int = 10

    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if self.device_count < 0:
            raise ValueError("device_count must be >= 0")
        if self.update_interval_seconds <= 0:
            raise ValueError("update_interval_seconds must be positive")
        if self.movement_speed < 0:
            raise ValueError("movement_speed must be >= 0")
        if not 0 < self.emergency_fraction <= 1:
            raise ValueError("emergency_fraction must be in (0, 1]")
        if self.emergency_duration_ticks < 1:
            raise ValueError("emergency_duration_ticks must be >= 1")


@dataclass
class SimulatedDevice:
    """
    Synthetic device tracked by the simulator.

    Attributes:
        device_id: Identifier used in emitted readings
        lat: Current latitude
        lng: Current longitude
        escape_lat: Unit escape direction (latitude component) during an emergency
        escape_lng: Unit escape direction (longitude component) during an emergency
        emergency_ticks: Remaining emergency ticks (0 = normal random walk)
    """

    device_id: str
    lat: float
    lng: float
    escape_lat: float = 0.0
    escape_lng: float = 0.0
    emergency_ticks: int = 0

    @property
    def position(self) -> Coordinate:
        """(longitude, latitude) pair, matching zone ring ordering."""
        return (self.lng, self.lat)

    @property
    def in_emergency(self) -> bool:
        return self.emergency_ticks > 0


class CrowdSimulator:
    """
    Periodic random-walk simulation of a crowd of devices.

    All methods must be called from the event loop thread. `start` needs a
    running loop because it schedules the tick task.

    Attributes:
        config: Simulation parameters
        is_running: Whether the tick task is active
    """

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize an idle simulator.

        Args:
            config: Simulation parameters (defaults if None)
            clock: Source of reading timestamps
        """
        self.config = config or SimulationConfig()
        self._clock = clock
        self._rng = np.random.default_rng(self.config.seed)

        self._devices: Dict[str, SimulatedDevice] = {}
        self._zones: List[Zone] = []
        self._on_reading: Optional[ReadingCallback] = None
        self._task: Optional[asyncio.Task] = None
        self._running: bool = False
        self._next_device_id: int = 0
        self._tick_count: int = 0
        self._readings_emitted: int = 0

        logger.info(
            f"CrowdSimulator initialized: devices={self.config.device_count}, "
            f"interval={self.config.update_interval_seconds}s, "
            f"speed={self.config.movement_speed}"
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self, zones: Sequence[Zone], on_reading: ReadingCallback) -> bool:
        """
        Populate devices and start the tick task.

        No-op if already running.

        Args:
            zones: Zones to place devices in
            on_reading: Called with every generated reading

        Returns:
            True if the simulation was started, False if it was already running
        """
        if self._running:
            logger.debug("CrowdSimulator already running, start ignored")
            return False

        loop = asyncio.get_running_loop()

        self._running = True
        self._zones = list(zones)
        self._on_reading = on_reading
        self._initialize_devices()

        self._task = loop.create_task(self._run(), name="crowd_simulator")

        logger.info(
            f"CrowdSimulator started: {len(self._devices)} devices "
            f"across {len(self._zones)} zones"
        )
        return True

    def stop(self) -> bool:
        """
        Cancel the tick task and clear the device population.

        No-op if already stopped.

        Returns:
            True if the simulation was stopped, False if it was not running
        """
        if not self._running:
            return False

        self._running = False
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._devices.clear()
        self._on_reading = None

        logger.info(
            f"CrowdSimulator stopped after {self._tick_count} ticks, "
            f"{self._readings_emitted} readings"
        )
        return True

    async def shutdown(self) -> None:
        """Stop and wait for the tick task to finish."""
        task = self._task
        self.stop()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run(self) -> None:
        """Tick loop."""
        interval = self.config.update_interval_seconds
        while self._running:
            await asyncio.sleep(interval)
            if not self._running:
                break
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Simulation tick error: {e}")

    # =========================================================================
    # Simulation Step
    # =========================================================================

    def tick(self) -> int:
        """
        Advance every device once and emit its reading.

        Returns:
            Number of readings emitted
        """
        self._tick_count += 1
        emitted = 0

        for device in list(self._devices.values()):
            self._move(device)
            reading = self._make_reading(device)
            if self._on_reading is not None:
                self._on_reading(reading)
            emitted += 1

        self._readings_emitted += emitted
        return emitted

    def _move(self, device: SimulatedDevice) -> None:
        """Apply one step of random walk or emergency escape."""
        step = self.config.step_degrees * self.config.movement_speed

        if device.in_emergency:
            escape_step = step * self.config.emergency_speed_multiplier
            jitter_lat, jitter_lng = (self._rng.random(2) - 0.5) * step
            device.lat += device.escape_lat * escape_step + float(jitter_lat)
            device.lng += device.escape_lng * escape_step + float(jitter_lng)
            device.emergency_ticks -= 1
            return

        d_lat, d_lng = (self._rng.random(2) - 0.5) * step
        device.lat += float(d_lat)
        device.lng += float(d_lng)

    def _make_reading(self, device: SimulatedDevice) -> SensorReading:
        ax, ay, az = self._rng.uniform(-1.0, 1.0, size=3)
        return SensorReading(
            device_id=device.device_id,
            timestamp=self._clock(),
            location=Location(
                lat=max(-90.0, min(90.0, float(device.lat))),
                lng=max(-180.0, min(180.0, float(device.lng))),
            ),
            motion=Motion(acceleration=Acceleration(x=float(ax), y=float(ay), z=float(az))),
        )

    # =========================================================================
    # Population
    # =========================================================================

    def _initialize_devices(self) -> None:
        self._devices.clear()
        if not self._zones:
            logger.warning("CrowdSimulator started with no zones, no devices placed")
            return

        for _ in range(self.config.device_count):
            zone = self._zones[int(self._rng.integers(len(self._zones)))]
            self._spawn(zone)

    def _spawn(self, zone: Zone) -> SimulatedDevice:
        min_lng, min_lat, max_lng, max_lat = bounding_box(zone.ring)
        device = SimulatedDevice(
            device_id=f"sim-device-{self._next_device_id}",
            lat=float(self._rng.uniform(min_lat, max_lat)),
            lng=float(self._rng.uniform(min_lng, max_lng)),
        )
        self._next_device_id += 1
        self._devices[device.device_id] = device
        return device

    def get_zone(self, zone_id: str) -> Optional[Zone]:
        """Zone from the snapshot taken at start, if present."""
        for zone in self._zones:
            if zone.id == zone_id:
                return zone
        return None

    def _find_zone(self, zone_id: str) -> Optional[Zone]:
        zone = self.get_zone(zone_id)
        if zone is not None:
            return zone
        logger.warning(f"Unknown zone for simulator command: {zone_id}")
        return None

    def devices_in_zone(self, zone_id: str) -> List[SimulatedDevice]:
        """Devices whose last position lies inside the zone ring, oldest first."""
        zone = self._find_zone(zone_id)
        if zone is None:
            return []
        return [d for d in self._devices.values() if point_in_ring(d.position, zone.ring)]

    def add_crowd(self, zone_id: str, count: int) -> int:
        """
        Add devices placed inside a zone's bounding box.

        Returns:
            Number of devices added (0 for an unknown zone)
        """
        zone = self._find_zone(zone_id)
        if zone is None or count <= 0:
            return 0

        for _ in range(count):
            self._spawn(zone)

        logger.info(f"Added {count} devices to {zone.name} (total={len(self._devices)})")
        return count

    def remove_crowd(self, zone_id: str, count: int) -> int:
        """
        Remove up to `count` devices currently inside a zone.

        Devices are chosen by zone membership of their last known
        position, oldest first.

        Returns:
            Number of devices removed
        """
        if count <= 0:
            return 0

        victims = self.devices_in_zone(zone_id)[:count]
        for device in victims:
            del self._devices[device.device_id]

        if victims:
            logger.info(f"Removed {len(victims)} devices from zone {zone_id}")
        return len(victims)

    def trigger_emergency(self, zone_id: str) -> int:
        """
        Make a fraction of the devices in a zone flee its epicenter.

        The epicenter is the mean of the zone's ring vertices. Picked
        devices move radially away from it at elevated speed for
        `emergency_duration_ticks` ticks.

        Returns:
            Number of devices put into emergency mode
        """
        zone = self._find_zone(zone_id)
        if zone is None:
            return 0

        inside = self.devices_in_zone(zone_id)
        if not inside:
            logger.info(f"Emergency in {zone.name}: no devices inside, nothing to do")
            return 0

        k = max(1, int(round(len(inside) * self.config.emergency_fraction)))
        picked = self._rng.choice(len(inside), size=k, replace=False)
        epicenter_lng, epicenter_lat = ring_centroid(zone.ring)

        for index in picked:
            device = inside[int(index)]
            d_lng = device.lng - epicenter_lng
            d_lat = device.lat - epicenter_lat
            norm = math.hypot(d_lng, d_lat)
            if norm == 0:
                angle = float(self._rng.uniform(0, 2 * math.pi))
                d_lng, d_lat, norm = math.cos(angle), math.sin(angle), 1.0
            device.escape_lng = d_lng / norm
            device.escape_lat = d_lat / norm
            device.emergency_ticks = self.config.emergency_duration_ticks

        logger.warning(f"Emergency triggered in {zone.name}: {k} of {len(inside)} devices fleeing")
        return k

    # =========================================================================
    # Introspection
    # =========================================================================

    @property
    def device_count(self) -> int:
        return len(self._devices)

    @property
    def devices(self) -> Dict[str, SimulatedDevice]:
        """Snapshot of the device population."""
        return dict(self._devices)

    def get_metrics(self) -> dict:
        return {
            "running": self._running,
            "devices": len(self._devices),
            "ticks": self._tick_count,
            "readings_emitted": self._readings_emitted,
        }
