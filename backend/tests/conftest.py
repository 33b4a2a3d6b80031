import asyncio
import heapq
import itertools
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from emulator.library import default_library, load_profile
from emulator.schemas import EmulatedDevice, GatewayConfig
from emulator.simulation.state import DeviceSimulationState, SimulationContext


class VirtualClock:
    """Stand-in for ``time.time``/``asyncio.sleep`` that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start
        self._sleepers: list = []
        self._seq = itertools.count()

    def time(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        fut = asyncio.get_running_loop().create_future()
        heapq.heappush(self._sleepers, (self.now + max(0.0, delay), next(self._seq), fut))
        await fut

    async def settle(self) -> None:
        for _ in range(50):
            await asyncio.sleep(0)

    async def advance(self, seconds: float) -> None:
        target = self.now + seconds
        await self.settle()
        while self._sleepers and self._sleepers[0][0] <= target:
            when, _, fut = heapq.heappop(self._sleepers)
            self.now = max(self.now, when)
            if not fut.done():
                fut.set_result(None)
            await self.settle()
        self.now = target


def make_profile(fields: dict, category: str = "meter", profile_id: str = "test-device", **extra):
    data = {
        "id": profile_id,
        "name": "Test Device",
        "manufacturer": "Acme",
        "category": category,
        "default_fport": 42,
        "simulation_profile": {"fields": fields},
    }
    data.update(extra)
    return load_profile(data)


def make_context(seq: int = 1, **overrides) -> SimulationContext:
    values = {
        "org_id": "org-1",
        "site_id": "site-1",
        "unit_id": "unit-1",
        "device_instance_id": "dev-1",
        "emission_sequence": seq,
    }
    values.update(overrides)
    return SimulationContext(**values)


@pytest.fixture
def clock():
    return VirtualClock()


@pytest.fixture
def library():
    return default_library()


@pytest.fixture
def em300(library):
    return library.get_device("milesight-em300-th")


@pytest.fixture
def fresh_state():
    return DeviceSimulationState(device_instance_id="dev-1")


@pytest.fixture
def gateway():
    return GatewayConfig(id="gw-1", eui="ac1f09fffe01a2b3")


@pytest.fixture
def device():
    return EmulatedDevice(
        id="dev-1",
        dev_eui="A8:40:41:00:01:81:C2:D1",
        profile_id="milesight-em300-th",
        org_id="org-1",
        site_id="site-1",
        unit_id="unit-1",
    )


@pytest.fixture
def mixed_profile():
    return make_profile(
        {
            "level": {"type": "float", "min": -1000, "max": 1000, "precision": 3},
            "flow": {"type": "float", "min": 0, "max": 5000, "precision": 2},
            "count": {"type": "int", "min": 0, "max": 1_000_000},
            "state": {"type": "enum", "values": ["a", "b", "c", "d", "e"]},
            "open": {"type": "bool"},
            "ticks": {"type": "int", "min": 0, "max": 65535, "increment": True},
            "kind": {"type": "string", "static": True, "default": "water"},
        }
    )
