"""
Engine Tests
============

End-to-end ingestion, error handling, lifecycle and control commands.
"""

import asyncio

import pytest

from crowd_whisper.engine import Engine
from crowd_whisper.errors import ZoneStoreUnavailable
from crowd_whisper.models import AlertStatus, AlertType, CommandType, ControlCommand, Trend
from crowd_whisper.signals import ReadingWindow
from crowd_whisper.simulation import CrowdSimulator, SimulationConfig
from crowd_whisper.stores import InMemoryAlertStore, InMemoryZoneStore
from crowd_whisper.stream import EventBroadcaster


class FailingZoneStore:
    def list_zones(self):
        raise ConnectionError("zone store down")


class SwitchableZoneStore(InMemoryZoneStore):
    """Zone store that starts failing once `failing` is set."""

    failing = False

    def list_zones(self):
        if self.failing:
            raise ConnectionError("zone store down")
        return super().list_zones()


class FailingAlertStore:
    def create_alert(self, alert):
        raise ConnectionError("alert store down")


def drain(subscription):
    events = []
    while (event := subscription.get_nowait()) is not None:
        events.append(event)
    return events


@pytest.fixture
def engine(festival_zones):
    return Engine(
        zone_store=InMemoryZoneStore(festival_zones),
        alert_store=InMemoryAlertStore(),
        broadcaster=EventBroadcaster(queue_size=5000),
        simulator=CrowdSimulator(SimulationConfig(device_count=100, seed=1)),
        clock=lambda: 2000.0,
    )


class TestIngest:
    """Synchronous ingestion path."""

    def test_main_stage_at_85_percent(self, engine, make_reading):
        result = None
        for i in range(850):
            result = engine.ingest(make_reading(f"device-{i}", timestamp=1000.0 + i * 0.1))

        assert result is not None
        assert result.sample.zone_id == "main-stage"
        assert result.sample.value == 85.0
        assert result.sample.trend == Trend.STABLE
        assert result.alert is not None
        assert result.alert.severity == 3
        assert "Main Stage" in result.alert.message
        assert "85" in result.alert.message

        # 80.0% .. 85.0% each raised a severity 3 alert
        assert len(engine.alert_store.list_alerts()) == 51

    def test_repeated_device_counts_once(self, engine, make_reading):
        for t in range(10):
            result = engine.ingest(make_reading("device-1", timestamp=1000.0 + t))

        assert result.sample.value == 0.1

    def test_unmatched_reading_is_dropped(self, engine, make_reading):
        subscription = engine.broadcaster.subscribe()

        assert engine.ingest(make_reading(lat=45.0, lng=45.0)) is None
        assert drain(subscription) == []
        assert engine.get_metrics()["readings_unmatched"] == 1

    def test_events_are_broadcast(self, engine, make_zone, make_reading):
        tiny = make_zone("tiny", "Tiny Tent", capacity=1, ring=[[1, 1], [1, 2], [2, 2], [2, 1], [1, 1]])
        engine.zone_store.put(tiny)
        subscription = engine.broadcaster.subscribe()

        engine.ingest(make_reading(lat=1.5, lng=1.5))

        events = drain(subscription)
        assert [e.event for e in events] == ["density_update", "alert"]
        assert events[0].data.value == 100.0
        assert events[1].data.severity == 5

    def test_zone_store_failure_propagates(self, make_reading):
        engine = Engine(zone_store=FailingZoneStore())

        with pytest.raises(ZoneStoreUnavailable):
            engine.ingest(make_reading())
        assert engine.get_metrics()["zone_store_errors"] == 1

    def test_alert_store_failure_does_not_block_sample(self, make_zone, make_reading):
        zone = make_zone(capacity=1)
        engine = Engine(
            zone_store=InMemoryZoneStore([zone]),
            alert_store=FailingAlertStore(),
        )
        subscription = engine.broadcaster.subscribe()

        result = engine.ingest(make_reading())

        assert result.sample.value == 100.0
        assert result.alert is not None
        assert engine.get_metrics()["alert_store_errors"] == 1
        assert [e.event for e in drain(subscription)] == ["density_update", "alert"]

    def test_sweep_evicts_stale_readings(self, festival_zones, make_reading):
        engine = Engine(
            zone_store=InMemoryZoneStore(festival_zones),
            window=ReadingWindow(horizon_seconds=300.0),
            clock=lambda: 1500.0,
        )
        engine.ingest(make_reading("old", timestamp=1000.0))
        engine.ingest(make_reading("recent", timestamp=1400.0))

        assert engine.sweep() == 1

        result = engine.ingest(make_reading("recent", timestamp=1450.0))
        assert result.sample.value == 0.1


class TestProcessingLoop:
    """Async submit/process path."""

    def test_submitted_readings_are_processed(self, engine, make_reading):
        async def scenario():
            engine.start()
            for i in range(5):
                engine.submit(make_reading(f"device-{i}"))
            for _ in range(100):
                if engine.get_metrics()["readings_processed"] == 5:
                    break
                await asyncio.sleep(0.01)
            metrics = engine.get_metrics()
            await engine.shutdown()
            return metrics

        metrics = asyncio.run(scenario())
        assert metrics["readings_processed"] == 5
        assert metrics["running"] is True

    def test_zone_store_failure_does_not_stop_loop(self, make_reading):
        engine = Engine(zone_store=FailingZoneStore())

        async def scenario():
            engine.start()
            engine.submit(make_reading())
            await asyncio.sleep(0.05)
            running = engine.is_running
            await engine.shutdown()
            return running

        assert asyncio.run(scenario()) is True
        assert engine.get_metrics()["zone_store_errors"] == 1

    def test_full_buffer_drops_oldest(self, festival_zones, make_reading):
        engine = Engine(zone_store=InMemoryZoneStore(festival_zones), ingest_queue_size=2)

        engine.submit(make_reading("a"))
        engine.submit(make_reading("b"))
        assert engine.submit(make_reading("c")) is False

        assert engine.buffer.dropped_count == 1
        assert engine.buffer.get_nowait().device_id == "b"

    def test_start_and_stop_are_idempotent(self, engine):
        async def scenario():
            results = [engine.start(), engine.start()]
            results += [engine.stop(), engine.stop()]
            await engine.shutdown()
            return results

        assert asyncio.run(scenario()) == [True, False, True, False]


class TestControlCommands:
    """Simulator and alert control through the engine."""

    def test_start_simulation_twice(self, engine):
        async def scenario():
            start = ControlCommand(type=CommandType.START_SIMULATION)
            results = [engine.handle_command(start), engine.handle_command(start)]
            count = engine.simulator.device_count
            await engine.shutdown()
            return results, count

        results, count = asyncio.run(scenario())
        assert results == [True, False]
        assert count == 100

    def test_stop_simulation_twice(self, engine):
        async def scenario():
            engine.handle_command(ControlCommand(type=CommandType.START_SIMULATION))
            stop = ControlCommand(type=CommandType.STOP_SIMULATION)
            return [engine.handle_command(stop), engine.handle_command(stop)]

        assert asyncio.run(scenario()) == [True, False]

    def test_simulated_readings_reach_ingest(self, engine):
        async def scenario():
            engine.start()
            engine.handle_command(ControlCommand(type=CommandType.START_SIMULATION))
            engine.simulator.tick()
            for _ in range(200):
                metrics = engine.get_metrics()
                if metrics["readings_processed"] + metrics["readings_unmatched"] == 100:
                    break
                await asyncio.sleep(0.01)
            metrics = engine.get_metrics()
            await engine.shutdown()
            return metrics

        metrics = asyncio.run(scenario())
        assert metrics["readings_processed"] + metrics["readings_unmatched"] == 100

    def test_crowd_commands_with_unknown_zone(self, engine):
        async def scenario():
            engine.handle_command(ControlCommand(type=CommandType.START_SIMULATION))
            results = [
                engine.handle_command(ControlCommand(type=CommandType.ADD_CROWD, zone_id="nope", count=5)),
                engine.handle_command(ControlCommand(type=CommandType.REMOVE_CROWD, zone_id="nope", count=5)),
                engine.handle_command(ControlCommand(type=CommandType.TRIGGER_EMERGENCY, zone_id="nope")),
            ]
            await engine.shutdown()
            return results

        assert asyncio.run(scenario()) == [False, False, False]

    def test_emergency_raises_alert(self, engine):
        async def scenario():
            engine.handle_command(ControlCommand(type=CommandType.START_SIMULATION))
            engine.handle_command(ControlCommand(type=CommandType.ADD_CROWD, zone_id="food-court", count=10))
            applied = engine.handle_command(
                ControlCommand(type=CommandType.TRIGGER_EMERGENCY, zone_id="food-court")
            )
            await engine.shutdown()
            return applied

        assert asyncio.run(scenario()) is True
        alerts = engine.alert_store.list_alerts()
        assert len(alerts) == 1
        assert alerts[0].type == AlertType.EMERGENCY
        assert "Food Court" in alerts[0].message

    def test_acknowledge_alert(self, engine, make_zone, make_reading):
        engine.zone_store.put(make_zone("tiny", "Tiny", capacity=1, ring=[[1, 1], [1, 2], [2, 2], [2, 1], [1, 1]]))
        alert = engine.ingest(make_reading(lat=1.5, lng=1.5)).alert
        subscription = engine.broadcaster.subscribe()

        applied = engine.handle_command(
            ControlCommand(type=CommandType.ACKNOWLEDGE_ALERT, alert_id=alert.id)
        )

        assert applied is True
        assert engine.alert_store.get(alert.id).status == AlertStatus.ACKNOWLEDGED
        events = drain(subscription)
        assert events[0].event == "alert_updated"
        assert events[0].data.status == AlertStatus.ACKNOWLEDGED

    def test_acknowledge_unknown_alert(self, engine):
        command = ControlCommand(type=CommandType.ACKNOWLEDGE_ALERT, alert_id="missing")
        assert engine.handle_command(command) is False

    def test_emergency_does_not_depend_on_zone_store(self, festival_zones):
        store = SwitchableZoneStore(festival_zones)
        engine = Engine(
            zone_store=store,
            alert_store=InMemoryAlertStore(),
            simulator=CrowdSimulator(SimulationConfig(device_count=0, seed=3)),
            clock=lambda: 2000.0,
        )
        subscription = engine.broadcaster.subscribe()

        async def scenario():
            engine.handle_command(ControlCommand(type=CommandType.START_SIMULATION))
            engine.handle_command(ControlCommand(type=CommandType.ADD_CROWD, zone_id="main-stage", count=4))
            store.failing = True
            applied = engine.handle_command(
                ControlCommand(type=CommandType.TRIGGER_EMERGENCY, zone_id="main-stage")
            )
            fleeing = sum(d.in_emergency for d in engine.simulator.devices.values())
            await engine.shutdown()
            return applied, fleeing

        applied, fleeing = asyncio.run(scenario())

        assert applied is True
        assert fleeing == 2
        alerts = engine.alert_store.list_alerts()
        assert [a.type for a in alerts] == [AlertType.EMERGENCY]
        assert "Main Stage" in alerts[0].message
        assert [e.event for e in drain(subscription)] == ["alert"]


class TestShutdown:
    """Task teardown."""

    def test_shutdown_awaits_simulator_task(self, engine):
        async def scenario():
            engine.start()
            engine.handle_command(ControlCommand(type=CommandType.START_SIMULATION))
            await engine.shutdown()
            return [t.get_name() for t in asyncio.all_tasks() if not t.done()]

        remaining = asyncio.run(scenario())

        assert "crowd_simulator" not in remaining
        assert "reading_processing" not in remaining
        assert engine.simulator.is_running is False
