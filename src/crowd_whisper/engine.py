"""
Crowd Density Engine
====================

Orchestrates the ingestion pipeline:

    reading -> GeofenceMatcher -> ReadingWindow.record
            -> DensityEstimator.compute -> AlertEvaluator.evaluate
            -> alert store (best effort) -> output sink

Producers (websocket clients, the crowd simulator) `submit` readings into
a bounded drop-oldest buffer. The processing task drains it in arrival
order and calls `ingest`. A separate sweep task evicts stale window
entries on a fixed interval.

Concurrency Model:
    Everything runs on one asyncio event loop and `ingest` never awaits,
    so ingestion, simulator ticks and window sweeps are serialized
    without locks. Readings are processed in arrival order; nothing is
    guaranteed about ordering across zones.

Error Handling:
    - No zone contains the reading: dropped silently, ingest returns None
    - Zone store fails: ZoneStoreUnavailable propagates from ingest; the
      processing loop logs it and moves on
    - Alert store fails: logged and counted, the sample is still emitted
"""

import asyncio
import logging
import time
from typing import Callable, List, Optional

from crowd_whisper.alerts import AlertEvaluator
from crowd_whisper.errors import ZoneStoreUnavailable
from crowd_whisper.geometry import GeofenceMatcher
from crowd_whisper.models.commands import CommandType, ControlCommand
from crowd_whisper.models.output import (
    Alert,
    AlertStatus,
    AlertType,
    AlertUpdate,
    IngestResult,
    OutputEvent,
)
from crowd_whisper.models.reading import SensorReading
from crowd_whisper.models.zone import Zone
from crowd_whisper.signals import DensityEstimator, ReadingWindow
from crowd_whisper.simulation import CrowdSimulator
from crowd_whisper.stores import AlertStore, ZoneStore
from crowd_whisper.stream import BoundedBuffer, EventBroadcaster


logger = logging.getLogger(__name__)


EMERGENCY_SEVERITY = 5


class Engine:
    """
    Real-time crowd density engine.

    Owns all per-zone state (reading windows, occupancy histories) and the
    scheduled tasks that mutate it. Collaborators are injected.

    Attributes:
        zone_store: Source of zone definitions
        alert_store: Sink for raised alerts (optional)
        broadcaster: Output sink for density and alert events
        window: Per-zone sliding window
        estimator: Occupancy and trend computation
        evaluator: Threshold alerting
        simulator: Synthetic reading producer

    Example:
        engine = Engine(zone_store=store, alert_store=alerts)
        engine.start()
        engine.submit(reading)
        ...
        await engine.shutdown()
    """

    def __init__(
        self,
        zone_store: ZoneStore,
        alert_store: Optional[AlertStore] = None,
        broadcaster: Optional[EventBroadcaster] = None,
        window: Optional[ReadingWindow] = None,
        estimator: Optional[DensityEstimator] = None,
        evaluator: Optional[AlertEvaluator] = None,
        simulator: Optional[CrowdSimulator] = None,
        sweep_interval_seconds: float = 60.0,
        ingest_queue_size: int = 1000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the engine.

        Args:
            zone_store: Zone store, read once per ingestion
            alert_store: Alert store; alerts are still broadcast without one
            broadcaster: Output sink (a fresh one if None)
            window: Reading window (5 minute horizon if None)
            estimator: Density estimator over `window` (created if None)
            evaluator: Alert evaluator (80/90 thresholds if None)
            simulator: Crowd simulator (defaults if None)
            sweep_interval_seconds: Period of the window sweep task
            ingest_queue_size: Capacity of the ingest buffer (drop-oldest)
            clock: Time source for sweeps
        """
        if sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be positive")

        self.zone_store = zone_store
        self.alert_store = alert_store
        self.broadcaster = broadcaster or EventBroadcaster()
        self.window = window or ReadingWindow()
        self.estimator = estimator or DensityEstimator(self.window)
        self.evaluator = evaluator or AlertEvaluator()
        self.simulator = simulator or CrowdSimulator(clock=clock)
        self.matcher = GeofenceMatcher()
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock

        self.buffer: BoundedBuffer[SensorReading] = BoundedBuffer(
            maxsize=ingest_queue_size,
            name="ingest",
        )

        # Tasks
        self._processing_task: Optional[asyncio.Task] = None
        self._sweep_task: Optional[asyncio.Task] = None
        self._running: bool = False

        # Counters
        self._readings_processed: int = 0
        self._readings_unmatched: int = 0
        self._samples_emitted: int = 0
        self._alerts_raised: int = 0
        self._zone_store_errors: int = 0
        self._alert_store_errors: int = 0
        self._pipeline_errors: int = 0

        logger.info(
            f"Engine initialized: horizon={self.window.horizon_seconds}s, "
            f"sweep={sweep_interval_seconds}s, queue={ingest_queue_size}"
        )

    # =========================================================================
    # Ingestion
    # =========================================================================

    def ingest(self, reading: SensorReading) -> Optional[IngestResult]:
        """
        Process one reading synchronously.

        Args:
            reading: Validated sensor reading

        Returns:
            IngestResult with the zone's new density sample and the alert
            it raised (if any), or None if no zone contains the reading

        Raises:
            ZoneStoreUnavailable: If the zone store could not be read
        """
        zones = self._list_zones()

        zone = self.matcher.find_zone(reading.location.as_point(), zones)
        if zone is None:
            self._readings_unmatched += 1
            return None

        self.window.record(zone.id, reading)
        sample = self.estimator.compute(zone, timestamp=reading.timestamp)
        alert = self.evaluator.evaluate(sample, zone)

        self._readings_processed += 1
        self._samples_emitted += 1
        self.broadcaster.publish(OutputEvent(event="density_update", data=sample))

        if alert is not None:
            self._raise_alert(alert)

        return IngestResult(sample=sample, alert=alert)

    def submit(self, reading: SensorReading) -> bool:
        """
        Queue a reading for the processing task.

        Never blocks. When the buffer is full the oldest queued reading
        is dropped.

        Returns:
            False if a reading had to be dropped to make room
        """
        return self.buffer.put_nowait(reading)

    def _list_zones(self) -> List[Zone]:
        try:
            return self.zone_store.list_zones()
        except Exception as e:
            self._zone_store_errors += 1
            raise ZoneStoreUnavailable(f"Zone store read failed: {e}") from e

    def _raise_alert(self, alert: Alert) -> None:
        """Hand an alert to the store (best effort) and broadcast it."""
        self._alerts_raised += 1

        if self.alert_store is not None:
            try:
                alert = self.alert_store.create_alert(alert)
            except Exception as e:
                self._alert_store_errors += 1
                logger.error(f"Alert store error (alert={alert.id}): {e}")

        logger.warning(f"Alert raised [severity {alert.severity}]: {alert.message}")
        self.broadcaster.publish(OutputEvent(event="alert", data=alert))

    # =========================================================================
    # Window Maintenance
    # =========================================================================

    def sweep(self, now: Optional[float] = None) -> int:
        """
        Evict window entries older than the horizon.

        Args:
            now: Reference time (defaults to the engine clock)

        Returns:
            Number of entries evicted
        """
        return self.window.sweep(self._clock() if now is None else now)

    async def _sweep_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Window sweep error: {e}")

    # =========================================================================
    # Processing Pipeline
    # =========================================================================

    async def process_readings(self) -> None:
        """Drain the ingest buffer until stopped."""
        logger.info("Reading processing pipeline started")

        while self._running:
            try:
                reading = await self.buffer.get(timeout=1.0)

                if reading is None:
                    continue

                try:
                    self.ingest(reading)
                except ZoneStoreUnavailable as e:
                    logger.error(f"Dropping reading from {reading.device_id}: {e}")

            except asyncio.CancelledError:
                logger.info("Reading processing pipeline cancelled")
                raise
            except Exception as e:
                self._pipeline_errors += 1
                logger.error(f"Pipeline error: {e}")
                await asyncio.sleep(0.1)

        logger.info("Reading processing pipeline stopped")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> bool:
        """
        Start the processing and sweep tasks.

        Must be called with a running event loop. No-op if already started.
        """
        if self._running:
            return False

        loop = asyncio.get_running_loop()
        self._running = True
        self._processing_task = loop.create_task(
            self.process_readings(),
            name="reading_processing",
        )
        self._sweep_task = loop.create_task(
            self._sweep_loop(),
            name="window_sweep",
        )

        logger.info("Engine started")
        return True

    def stop(self) -> bool:
        """
        Cancel all scheduled tasks, including the simulator's.

        Safe to call repeatedly and from a disconnect/shutdown path.
        """
        self.simulator.stop()

        if not self._running:
            return False

        self._running = False
        for task in (self._processing_task, self._sweep_task):
            if task is not None:
                task.cancel()

        logger.info("Engine stopped")
        return True

    async def shutdown(self) -> None:
        """Stop and wait for every task to finish."""
        tasks = [t for t in (self._processing_task, self._sweep_task) if t is not None]
        await self.simulator.shutdown()
        self.stop()

        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._processing_task = None
        self._sweep_task = None
        logger.info("Engine shutdown complete")

    # =========================================================================
    # Control Commands
    # =========================================================================

    def handle_command(self, command: ControlCommand) -> bool:
        """
        Apply a control command.

        Unknown zone or alert ids, starting a running simulation and
        stopping a stopped one are all non-fatal no-ops.

        Returns:
            True if the command changed anything
        """
        logger.info(f"Control command: {command.type.value}")

        if command.type == CommandType.START_SIMULATION:
            zones = self._list_zones()
            return self.simulator.start(zones, self.submit)

        if command.type == CommandType.STOP_SIMULATION:
            return self.simulator.stop()

        if command.type == CommandType.ADD_CROWD:
            return self.simulator.add_crowd(command.zone_id, command.count) > 0

        if command.type == CommandType.REMOVE_CROWD:
            return self.simulator.remove_crowd(command.zone_id, command.count) > 0

        if command.type == CommandType.TRIGGER_EMERGENCY:
            return self._trigger_emergency(command.zone_id)

        if command.type == CommandType.ACKNOWLEDGE_ALERT:
            return self.acknowledge_alert(command.alert_id)

        return False

    def _trigger_emergency(self, zone_id: str) -> bool:
        # Resolved from the simulator's snapshot; the zone store is not
        # touched once devices have started fleeing.
        zone = self.simulator.get_zone(zone_id)
        affected = self.simulator.trigger_emergency(zone_id)
        if zone is None or affected == 0:
            return False

        name = zone.name
        self._raise_alert(
            Alert(
                type=AlertType.EMERGENCY,
                severity=EMERGENCY_SEVERITY,
                affected_zones=[zone_id],
                message=f"Emergency triggered in {name}: {affected} devices evacuating.",
                timestamp=self._clock(),
            )
        )
        return True

    def acknowledge_alert(self, alert_id: str) -> bool:
        """
        Mark an alert as acknowledged and broadcast the change.

        Returns:
            False if there is no alert store, it cannot update alerts, or
            the id is unknown
        """
        update_status = getattr(self.alert_store, "update_status", None)
        if update_status is None:
            logger.warning("Alert store does not support status updates")
            return False

        updated = update_status(alert_id, AlertStatus.ACKNOWLEDGED)
        if updated is None:
            logger.debug(f"Acknowledge ignored, unknown alert: {alert_id}")
            return False

        self.broadcaster.publish(
            OutputEvent(
                event="alert_updated",
                data=AlertUpdate(id=alert_id, status=AlertStatus.ACKNOWLEDGED),
            )
        )
        return True

    # =========================================================================
    # Observability
    # =========================================================================

    def get_metrics(self) -> dict:
        """Get engine metrics for observability."""
        return {
            "running": self._running,
            "readings_processed": self._readings_processed,
            "readings_unmatched": self._readings_unmatched,
            "samples_emitted": self._samples_emitted,
            "alerts_raised": self._alerts_raised,
            "alerts_suppressed": self.evaluator.suppressed_count,
            "zone_store_errors": self._zone_store_errors,
            "alert_store_errors": self._alert_store_errors,
            "pipeline_errors": self._pipeline_errors,
            "buffer": self.buffer.metrics(),
            "window": self.window.metrics(),
            "broadcaster": self.broadcaster.metrics(),
            "simulation": self.simulator.get_metrics(),
        }
