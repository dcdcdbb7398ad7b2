"""
crowd-whisper
=============

Real-time crowd density estimation from geolocated device readings.

This package ingests sensor readings (real or simulated), maps each one to
a geofenced zone, keeps a sliding window of recent occupants per zone,
derives an occupancy percentage and trend, and raises threshold alerts.

Components:
    - geometry: Ray-casting geofence matching
    - signals: Reading window and density/trend estimation
    - alerts: Threshold alert evaluation
    - simulation: Synthetic crowd load generator
    - stores: Zone and alert store interfaces
    - stream: Bounded buffering and event fan-out
    - engine: Orchestration of the ingestion pipeline

Example:
    from crowd_whisper.engine import Engine
    from crowd_whisper.stores import InMemoryZoneStore

    engine = Engine(zone_store=InMemoryZoneStore(zones))
    result = engine.ingest(reading)
"""

__version__ = "0.1.0"
__author__ = "Crowd Whisper Project"

__all__ = [
    "__version__",
]
