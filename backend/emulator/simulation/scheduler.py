"""Independent per-device emission timers on the running asyncio loop."""

from __future__ import annotations

import asyncio
import inspect
import logging
import math
import time
from contextlib import suppress
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from ..errors import ValidationError

logger = logging.getLogger(__name__)

EmissionCallback = Callable[[str], Any]


def _iso(ts: float | None) -> str | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


@dataclass
class DeviceEmissionStatus:
    device_id: str
    is_running: bool = False
    interval_seconds: float = 0.0
    emission_count: int = 0
    errors: int = 0
    last_emitted_at: float | None = None
    started_at: float | None = None
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["last_emitted_at"] = _iso(self.last_emitted_at)
        data["started_at"] = _iso(self.started_at)
        return data


class EmissionScheduler:
    """One asyncio task per device id, firing a callback every ``interval_seconds``.

    Ticks are anchored to the start time (``anchor + n * interval``) so slow callbacks do
    not push later ticks back; ticks missed entirely are skipped, not replayed. A failing
    callback is logged and counted and the device keeps its schedule.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._tasks: dict[str, asyncio.Task] = {}
        self._callbacks: dict[str, EmissionCallback] = {}
        self._status: dict[str, DeviceEmissionStatus] = {}

    # -------------------- lifecycle --------------------

    def start_device(
        self,
        device_id: str,
        interval_seconds: float,
        callback: EmissionCallback,
        *,
        emit_immediately: bool = False,
    ) -> None:
        if not interval_seconds or interval_seconds <= 0 or not math.isfinite(interval_seconds):
            raise ValidationError(f"interval must be a positive number of seconds, got {interval_seconds!r}")

        loop = asyncio.get_running_loop()
        self.stop_device(device_id)

        status = self._status.setdefault(device_id, DeviceEmissionStatus(device_id))
        status.is_running = True
        status.interval_seconds = float(interval_seconds)
        status.started_at = self._clock()

        self._callbacks[device_id] = callback
        self._tasks[device_id] = loop.create_task(
            self._run(device_id, float(interval_seconds), callback, emit_immediately),
            name=f"emit:{device_id}",
        )
        logger.info(
            "Started emissions for %s every %.1fs%s",
            device_id,
            interval_seconds,
            " (emitting now)" if emit_immediately else "",
        )

    def stop_device(self, device_id: str) -> bool:
        task = self._tasks.pop(device_id, None)
        self._callbacks.pop(device_id, None)
        status = self._status.get(device_id)
        if status:
            status.is_running = False
        if task is None:
            return False
        task.cancel()
        logger.info("Stopped emissions for %s", device_id)
        return True

    def stop_all(self) -> int:
        device_ids = list(self._tasks)
        for device_id in device_ids:
            self.stop_device(device_id)
        if device_ids:
            logger.info("Stopped %d emission timers", len(device_ids))
        return len(device_ids)

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        self.stop_all()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task

    def update_interval(self, device_id: str, interval_seconds: float) -> bool:
        callback = self._callbacks.get(device_id)
        if callback is None or not self.is_running(device_id):
            return False
        self.start_device(device_id, interval_seconds, callback)
        return True

    # -------------------- loop --------------------

    async def _run(
        self,
        device_id: str,
        interval: float,
        callback: EmissionCallback,
        emit_immediately: bool,
    ) -> None:
        anchor = self._clock()
        tick = 0
        if emit_immediately:
            await self._fire(device_id, callback)

        while True:
            tick += 1
            now = self._clock()
            if anchor + tick * interval < now:
                tick = math.floor((now - anchor) / interval) + 1
            delay = anchor + tick * interval - now
            await self._sleep(max(0.0, delay))
            await self._fire(device_id, callback)

    async def _fire(self, device_id: str, callback: EmissionCallback) -> None:
        status = self._status[device_id]
        try:
            result = callback(device_id)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001 - one device's failure must not stop its timer
            status.errors += 1
            status.last_error = f"{type(exc).__name__}: {exc}"
            logger.error(
                "Emission failed for %s: %s",
                device_id,
                exc,
                extra={"device_id": device_id, "error_type": type(exc).__name__},
            )
            return
        status.emission_count += 1
        status.last_emitted_at = self._clock()

    # -------------------- inspection --------------------

    def is_running(self, device_id: str) -> bool:
        task = self._tasks.get(device_id)
        return task is not None and not task.done()

    def get_status(self, device_id: str) -> DeviceEmissionStatus | None:
        status = self._status.get(device_id)
        if status is not None:
            status.is_running = self.is_running(device_id)
        return status

    def all_status(self) -> list[DeviceEmissionStatus]:
        return [self.get_status(device_id) for device_id in list(self._status)]

    def running_status(self) -> list[DeviceEmissionStatus]:
        return [s for s in self.all_status() if s.is_running]

    def reset_status(self, device_id: str | None = None) -> None:
        if device_id is None:
            self._status = {k: v for k, v in self._status.items() if self.is_running(k)}
            for status in self._status.values():
                status.emission_count = status.errors = 0
                status.last_emitted_at = status.last_error = None
            return
        status = self._status.get(device_id)
        if status is not None:
            status.emission_count = status.errors = 0
            status.last_emitted_at = status.last_error = None

    @property
    def active_count(self) -> int:
        return sum(1 for device_id in self._tasks if self.is_running(device_id))

    @property
    def total_emissions(self) -> int:
        return sum(s.emission_count for s in self._status.values())

    @property
    def total_errors(self) -> int:
        return sum(s.errors for s in self._status.values())

    def summary(self) -> dict[str, Any]:
        return {
            "active_devices": self.active_count,
            "total_emissions": self.total_emissions,
            "total_errors": self.total_errors,
            "devices": [s.to_dict() for s in self.all_status()],
        }
