"""Per-device-instance simulation state, keyed by device instance id."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from .state import DeviceSimulationState, utc_now_iso

logger = logging.getLogger(__name__)


class DeviceStateStore:
    """Keyed map of ``DeviceSimulationState`` records.

    Every operation touches exactly one key. Callers that read, compute and write back
    (the emission pipeline) hold :meth:`lock` for that key; there is no cross-key locking.
    Records handed out are copies, so nothing outside the store can alter a stored one.
    """

    def __init__(self) -> None:
        self._states: dict[str, DeviceSimulationState] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, device_instance_id: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(device_instance_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[device_instance_id] = lock
            return lock

    @contextmanager
    def lock(self, device_instance_id: str) -> Iterator[None]:
        with self._lock_for(device_instance_id):
            yield

    def get(self, device_instance_id: str) -> DeviceSimulationState | None:
        with self._lock_for(device_instance_id):
            state = self._states.get(device_instance_id)
            return state.evolve() if state else None

    def get_or_create(self, device_instance_id: str, profile_id: str = "") -> DeviceSimulationState:
        with self._lock_for(device_instance_id):
            state = self._states.get(device_instance_id)
            if state is None:
                state = DeviceSimulationState(device_instance_id=device_instance_id, profile_id=profile_id)
                self._states[device_instance_id] = state
                logger.debug("Created state for %s (profile %s)", device_instance_id, profile_id or "-")
            elif profile_id and state.profile_id != profile_id:
                state = state.evolve(profile_id=profile_id, updated_at=utc_now_iso())
                self._states[device_instance_id] = state
            return state.evolve()

    def update(self, new_state: DeviceSimulationState) -> DeviceSimulationState:
        key = new_state.device_instance_id
        with self._lock_for(key):
            stored = new_state.evolve(updated_at=utc_now_iso())
            self._states[key] = stored
            return stored.evolve()

    def increment_f_cnt(self, device_instance_id: str) -> int:
        with self._lock_for(device_instance_id):
            state = self._states.get(device_instance_id) or DeviceSimulationState(device_instance_id)
            state = state.evolve(f_cnt=state.f_cnt + 1, updated_at=utc_now_iso())
            self._states[device_instance_id] = state
            return state.f_cnt

    def increment_counter(self, device_instance_id: str, name: str) -> int:
        with self._lock_for(device_instance_id):
            state = self._states.get(device_instance_id) or DeviceSimulationState(device_instance_id)
            counters = dict(state.counters)
            counters[name] = counters.get(name, 0) + 1
            self._states[device_instance_id] = state.evolve(counters=counters, updated_at=utc_now_iso())
            return counters[name]

    def get_counter(self, device_instance_id: str, name: str) -> int:
        with self._lock_for(device_instance_id):
            state = self._states.get(device_instance_id)
            return state.counters.get(name, 0) if state else 0

    def set_counter(self, device_instance_id: str, name: str, value: int) -> None:
        with self._lock_for(device_instance_id):
            state = self._states.get(device_instance_id) or DeviceSimulationState(device_instance_id)
            counters = dict(state.counters)
            counters[name] = int(value)
            self._states[device_instance_id] = state.evolve(counters=counters, updated_at=utc_now_iso())

    def reset(self, device_instance_id: str) -> bool:
        with self._lock_for(device_instance_id):
            removed = self._states.pop(device_instance_id, None) is not None
        if removed:
            logger.info("Reset state for %s", device_instance_id)
        return removed

    def clear_all(self) -> None:
        with self._registry_lock:
            count = len(self._states)
            self._states.clear()
        logger.info("Cleared %d device states", count)

    def all_states(self) -> list[DeviceSimulationState]:
        with self._registry_lock:
            states = list(self._states.values())
        return [s.evolve() for s in states]

    def summary(self) -> dict:
        states = self.all_states()
        return {
            "total_devices": len(states),
            "total_emissions": sum(s.emission_sequence for s in states),
            "devices": [
                {
                    "device_instance_id": s.device_instance_id,
                    "profile_id": s.profile_id,
                    "f_cnt": s.f_cnt,
                    "counters": dict(s.counters),
                    "last_emitted_at": s.last_emitted_at,
                }
                for s in states
            ],
        }

    def __contains__(self, device_instance_id: object) -> bool:
        return device_instance_id in self._states

    def __len__(self) -> int:
        return len(self._states)


state_store = DeviceStateStore()
