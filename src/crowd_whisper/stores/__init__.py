"""
Stores Module
=============

Interfaces to the external zone and alert stores, with in-memory
implementations used by the service and the tests.
"""

from crowd_whisper.stores.zones import InMemoryZoneStore, ZoneStore
from crowd_whisper.stores.alerts import AlertStore, InMemoryAlertStore

__all__ = [
    "ZoneStore",
    "InMemoryZoneStore",
    "AlertStore",
    "InMemoryAlertStore",
]
