"""Periodic tick tying together telemetry, alerts, maintenance and metrics."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

import numpy as np

from ..errors import AlertAlreadyProgrammed, AlertNotFound, NodeNotFound
from ..maintenance.profiles import (
    DEFAULT_PROFILES,
    MaintenanceConstraints,
    MaintenanceProfile,
    MaintenanceTask,
    MaintenanceType,
)
from ..maintenance.scheduler import MaintenanceScheduler
from ..sim.alerts import DEFAULT_RETENTION, Alert, AlertDeriver, NodeStatus
from ..sim.fleet import Location, Node, create_fleet, random_location
from ..sim.kpis import TimeSeriesAggregator, buffer_capacity, fleet_health
from ..sim.patterns import pattern_for
from ..sim.telemetry import FaultRates, TelemetryGenerator
from ..utils.logging import logger
from ..utils.seed import make_rng
from ..utils.timers import TimerPool

Publisher = Callable[[Dict[str, object]], Awaitable[None]]


@dataclass(frozen=True)
class SimulationConfig:
    tick_interval: float = 5.0
    node_count: int = 8
    seed: Optional[int] = None
    alert_retention: timedelta = DEFAULT_RETENTION
    faults: FaultRates = field(default_factory=FaultRates)
    constraints: MaintenanceConstraints = field(default_factory=MaintenanceConstraints)
    profiles: Mapping[MaintenanceType, MaintenanceProfile] = field(default_factory=lambda: DEFAULT_PROFILES)

    def __post_init__(self) -> None:
        if self.tick_interval <= 0:
            raise ValueError(f"tick_interval must be positive, got {self.tick_interval}")
        if self.node_count < 0:
            raise ValueError(f"node_count must be non-negative, got {self.node_count}")


@dataclass(frozen=True)
class Snapshot:
    """Serialized fleet state as of one completed tick."""

    tick: int
    timestamp: Optional[datetime]
    nodes: Tuple[Dict[str, object], ...] = ()
    alerts: Tuple[Dict[str, object], ...] = ()
    tasks: Tuple[Dict[str, object], ...] = ()

    def as_dict(self) -> Dict[str, object]:
        return {
            "tick": self.tick,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "nodes": list(self.nodes),
            "alerts": list(self.alerts),
            "tasks": list(self.tasks),
        }


class SimulationEngine:
    """Single writer for all simulator state.

    Every mutation (tick, scheduling request, node add) runs under one
    asyncio lock; readers only ever see the last published :class:`Snapshot`.
    """

    def __init__(
        self,
        config: SimulationConfig | None = None,
        rng: np.random.Generator | None = None,
        clock: Callable[[], datetime] | None = None,
        publish: Publisher | None = None,
    ):
        self.config = config or SimulationConfig()
        self.rng = rng if rng is not None else make_rng(self.config.seed)
        self.clock = clock or datetime.now
        self.publish = publish

        self.fleet = create_fleet(self.config.node_count, self.rng)
        self.telemetry = TelemetryGenerator(self.rng, self.config.faults)
        self.deriver = AlertDeriver(self.rng, self.config.alert_retention)
        self.scheduler = MaintenanceScheduler(self.rng, self.config.constraints, self.config.profiles)
        self.aggregator = TimeSeriesAggregator(buffer_capacity(self.config.tick_interval))
        self.alerts: List[Alert] = []

        self.timers = TimerPool()
        self.ticks = 0
        self.failed_ticks = 0
        self.started_at = self.clock()
        self._lock = asyncio.Lock()
        self._outbox: List[Dict[str, object]] = []
        self._snapshot = Snapshot(tick=0, timestamp=None)
        self._statistics: Dict[str, object] = {}
        self._running = False
        self._task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------ queries
    def current_snapshot(self) -> Snapshot:
        return self._snapshot

    def statistics(self) -> Dict[str, object]:
        return self._statistics

    def performance(self) -> Dict[str, object]:
        tick_time = self.timers.get("tick")
        attempts = self.ticks + self.failed_ticks
        return {
            "uptime": int((self.clock() - self.started_at).total_seconds()),
            "ticks": self.ticks,
            "failedTicks": self.failed_ticks,
            "errorRate": self.failed_ticks / max(1, attempts),
            "responseTime": tick_time.avg,
            "tickTime": tick_time.as_dict(),
            "lastUpdate": self._snapshot.timestamp.isoformat() if self._snapshot.timestamp else None,
        }

    # ------------------------------------------------------------------ tick
    def tick(self, now: Optional[datetime] = None) -> Snapshot:
        """Run one reconciliation pass synchronously.

        Order matters: maintenance advances first so telemetry generated
        for ``now`` already sees nodes that just entered maintenance. If
        anything fails before the commit, task lifecycle changes are rolled
        back so the next tick makes (and announces) them again.
        """

        now = now or self.clock()
        with self.timers.track("tick"):
            lifecycle = self.scheduler.lifecycle_state()
            try:
                changed = self.scheduler.advance(now)
                busy = self.scheduler.nodes_under_maintenance()
                pattern, period = pattern_for(now)

                updates = []
                new_alerts: List[Alert] = []
                for node in self.fleet:
                    measurement = self.telemetry.generate(node.id, pattern, node.id in busy, now)
                    status, alert = self.deriver.derive(node.id, node.status, measurement)
                    updates.append((node, measurement, status))
                    if alert is not None:
                        new_alerts.append(alert)
                alerts = new_alerts + self.deriver.expire(self.alerts, now)

                task_counts = self.scheduler.counts()
                efficiency = self.scheduler.efficiency()
            except Exception:
                self.scheduler.restore_lifecycle(lifecycle)
                raise

            # commit
            self.aggregator.update(
                now, pattern, [m for _, m, _ in updates], task_counts, efficiency, alerts
            )

            for node, measurement, status in updates:
                node.measurement = measurement
                node.status = status
                node.last_update = now
            self.alerts = alerts
            self._attach_alerts()
            self.ticks += 1

            statuses = self.fleet.statuses()
            health = fleet_health(statuses)
            self._statistics = {
                **self.aggregator.summary(now, statuses, alerts, task_counts, efficiency),
                "health": health.as_dict(),
            }
            self._snapshot = self._build_snapshot(now)

        for task in changed:
            self._outbox.append(_maintenance_event("update", task))
        if health.too_many_offline:
            logger.warning("High number of offline nodes: {}/{}", statuses["offline"], health.total)
        if health.too_many_errors:
            logger.warning("High number of nodes in error: {}/{}", statuses["error"], health.total)
        logger.debug(
            "tick={} period={} alerts={} new_alerts={} tasks={}",
            self.ticks, period.value, len(alerts), len(new_alerts), task_counts,
        )
        return self._snapshot

    def _attach_alerts(self) -> None:
        per_node: Dict[str, List[Alert]] = {}
        for alert in self.alerts:
            per_node.setdefault(alert.node_id, []).append(alert)
        for node in self.fleet:
            node.alerts = per_node.get(node.id, [])

    def _build_snapshot(self, now: Optional[datetime]) -> Snapshot:
        return Snapshot(
            tick=self.ticks,
            timestamp=now,
            nodes=tuple(node.as_dict() for node in self.fleet),
            alerts=tuple(alert.as_dict() for alert in self.alerts),
            tasks=tuple(task.as_dict() for task in self.scheduler.tasks),
        )

    # ------------------------------------------------------------------ commands
    async def step(self) -> Optional[Snapshot]:
        """Run one tick under the lock and publish its events."""

        async with self._lock:
            try:
                snapshot = self.tick()
            except Exception:
                self.failed_ticks += 1
                logger.exception("Tick failed; keeping snapshot from tick {}", self._snapshot.tick)
                self._outbox.clear()
                return None
            events = self._outbox
            self._outbox = []
            events.append({"type": "snapshot", "data": snapshot.as_dict()})
            events.append(
                {
                    "type": "statistics",
                    "data": {**self.aggregator.as_dict(), "summary": self._statistics},
                }
            )
            for event in events:
                await self._emit(event)
            return snapshot

    async def schedule_maintenance(
        self,
        node_id: str,
        kind: MaintenanceType,
        alert_id: Optional[str] = None,
        start: Optional[datetime] = None,
    ) -> MaintenanceTask:
        """Place a maintenance task between two ticks.

        Raises:
            NodeNotFound, AlertNotFound, AlertAlreadyProgrammed,
            ConstraintError (explicit ``start`` only), SchedulingExhausted.
        """

        async with self._lock:
            if node_id not in self.fleet:
                raise NodeNotFound(node_id)
            index = None
            if alert_id is not None:
                index = self._alert_index(alert_id)
                if self.alerts[index].programmed:
                    raise AlertAlreadyProgrammed(alert_id)

            if start is not None:
                task = self.scheduler.place(node_id, kind, start, alert_id)
            else:
                task = self.scheduler.schedule(node_id, kind, self.clock(), alert_id)

            if index is not None:
                self.alerts[index] = self.alerts[index].mark_programmed()
                self._attach_alerts()
            self._snapshot = self._build_snapshot(self._snapshot.timestamp)
            await self._emit(_maintenance_event("new", task))
            return task

    async def add_node(self, name: str, location: Optional[Location] = None) -> Node:
        async with self._lock:
            node = self.fleet.add(name, location or random_location(self.rng))
            now = self.clock()
            pattern, _ = pattern_for(now)
            node.measurement = self.telemetry.generate(node.id, pattern, False, now)
            node.status = NodeStatus.ACTIVE
            node.last_update = now
            self._snapshot = self._build_snapshot(self._snapshot.timestamp)
            logger.info("Added node {} ({})", node.id, name)
            return node

    def _alert_index(self, alert_id: str) -> int:
        for i, alert in enumerate(self.alerts):
            if alert.id == alert_id:
                return i
        raise AlertNotFound(alert_id)

    async def _emit(self, event: Dict[str, object]) -> None:
        if self.publish is None:
            return
        try:
            await self.publish(event)
        except Exception:
            logger.exception("Publishing {} event failed", event.get("type"))

    # ------------------------------------------------------------------ loop
    async def run(self) -> None:
        """Tick every ``tick_interval`` seconds; late ticks defer, never overlap."""

        self._running = True
        loop = asyncio.get_running_loop()
        interval = self.config.tick_interval
        next_due = loop.time()
        while self._running:
            await self.step()
            next_due += interval
            delay = next_due - loop.time()
            if delay < 0:
                logger.warning("Tick overran its interval by {:.3f}s; deferring next tick", -delay)
                next_due = loop.time()
                delay = 0.0
            await asyncio.sleep(delay)

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self.run())
            logger.info("Simulation started ({} nodes, every {}s)", len(self.fleet), self.config.tick_interval)
        else:
            logger.warning("Simulation already running")

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Simulation stopped after {} ticks", self.ticks)


def _maintenance_event(kind: str, task: MaintenanceTask) -> Dict[str, object]:
    return {"type": "maintenance", "data": {"type": kind, "task": task.as_dict()}}


__all__ = ["SimulationConfig", "Snapshot", "SimulationEngine", "Publisher"]
