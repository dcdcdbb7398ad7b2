#!/usr/bin/env python3
"""
Simulated Load Run
==================

Standalone script that drives the density engine with the crowd simulator.

This script:
    1. Loads zone definitions from JSON
    2. Starts the engine and the simulator
    3. Optionally adds a crowd or triggers an emergency part-way through
    4. Logs per-zone occupancy every few seconds
    5. Reports a final summary

Usage:
    python scripts/simulate_load.py --duration 60 --devices 500
    python scripts/simulate_load.py --surge main-stage:900 --emergency main-stage
"""

import argparse
import asyncio
import logging
import os
import sys
import time

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from crowd_whisper.engine import Engine
from crowd_whisper.models import CommandType, ControlCommand
from crowd_whisper.simulation import CrowdSimulator, SimulationConfig
from crowd_whisper.stores import InMemoryAlertStore, InMemoryZoneStore


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


async def run_simulation(
    zones_path: str,
    duration: int,
    devices: int,
    interval: float,
    report_interval: int,
    surge: str,
    emergency: str,
    seed: int,
) -> dict:
    """
    Run the engine against simulated devices.

    Args:
        zones_path: Path to zone JSON file
        duration: Run duration in seconds
        devices: Initial simulated device count
        interval: Simulator tick interval in seconds
        report_interval: Seconds between progress reports
        surge: Optional "zone_id:count" crowd to add at half time
        emergency: Optional zone id to trigger an emergency in at half time
        seed: Random seed

    Returns:
        Final metrics dict
    """
    zone_store = InMemoryZoneStore()
    zone_store.load_from_file(zones_path)
    alert_store = InMemoryAlertStore()

    engine = Engine(
        zone_store=zone_store,
        alert_store=alert_store,
        simulator=CrowdSimulator(
            SimulationConfig(
                device_count=devices,
                update_interval_seconds=interval,
                seed=seed,
            )
        ),
    )
    subscription = engine.broadcaster.subscribe()

    logger.info("=" * 60)
    logger.info("Simulated Load Run")
    logger.info("=" * 60)
    logger.info(f"Zones: {[z.name for z in zone_store.list_zones()]}")
    logger.info(f"Duration: {duration} seconds, devices: {devices}, interval: {interval}s")
    logger.info("=" * 60)

    engine.start()
    engine.handle_command(ControlCommand(type=CommandType.START_SIMULATION))

    latest = {}
    start_time = time.time()
    last_report_time = start_time
    midpoint_done = False

    try:
        while time.time() - start_time < duration:
            event = await subscription.get(timeout=0.5)
            if event is not None and event.event == "density_update":
                latest[event.data.zone_id] = event.data

            elapsed = time.time() - start_time

            if not midpoint_done and elapsed >= duration / 2:
                midpoint_done = True
                if surge:
                    zone_id, _, count = surge.partition(":")
                    engine.handle_command(ControlCommand(
                        type=CommandType.ADD_CROWD, zone_id=zone_id, count=int(count or 0),
                    ))
                if emergency:
                    engine.handle_command(ControlCommand(
                        type=CommandType.TRIGGER_EMERGENCY, zone_id=emergency,
                    ))

            if time.time() - last_report_time >= report_interval:
                logger.info("-" * 40)
                logger.info(f"Progress Report (elapsed: {elapsed:.0f}s)")
                for zone_id, sample in sorted(latest.items()):
                    logger.info(f"  {zone_id}: {sample.value:5.1f}% ({sample.trend.value})")
                logger.info(f"  Buffer dropped: {engine.buffer.dropped_count}")
                last_report_time = time.time()

    except KeyboardInterrupt:
        logger.info("Run interrupted by user")
    finally:
        await engine.shutdown()

    metrics = engine.get_metrics()
    alerts = alert_store.list_alerts()

    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Readings processed: {metrics['readings_processed']}")
    logger.info(f"Readings outside zones: {metrics['readings_unmatched']}")
    logger.info(f"Alerts raised: {metrics['alerts_raised']}")
    logger.info(f"Buffer drops: {metrics['buffer']['dropped_count']}")
    for alert in alerts[-5:]:
        logger.info(f"  [{alert.severity}] {alert.message}")
    logger.info("=" * 60)

    return metrics


def main():
    parser = argparse.ArgumentParser(
        description="Drive the crowd density engine with simulated devices"
    )
    parser.add_argument(
        "--zones",
        type=str,
        default=os.environ.get(
            "CROWD_WHISPER_ZONES_PATH",
            os.path.join(os.path.dirname(__file__), "..", "data", "zones", "festival_grounds.json"),
        ),
        help="Path to zone JSON file",
    )
    parser.add_argument("--duration", type=int, default=30, help="Run duration in seconds (default: 30)")
    parser.add_argument("--devices", type=int, default=100, help="Simulated devices (default: 100)")
    parser.add_argument("--interval", type=float, default=1.0, help="Tick interval in seconds (default: 1.0)")
    parser.add_argument("--report-interval", type=int, default=5, help="Seconds between reports (default: 5)")
    parser.add_argument("--surge", type=str, default="", help="zone_id:count crowd added at half time")
    parser.add_argument("--emergency", type=str, default="", help="Zone id for an emergency at half time")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")

    args = parser.parse_args()

    result = asyncio.run(run_simulation(
        zones_path=args.zones,
        duration=args.duration,
        devices=args.devices,
        interval=args.interval,
        report_interval=args.report_interval,
        surge=args.surge,
        emergency=args.emergency,
        seed=args.seed,
    ))

    sys.exit(0 if result["readings_processed"] > 0 else 1)


if __name__ == "__main__":
    main()
