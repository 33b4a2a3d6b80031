"""Config-driven device fleet: keeps one emission timer per enabled device."""

from __future__ import annotations

import asyncio
import errno
import hashlib
import json
import logging
import shutil
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .errors import ConfigurationError, EmulatorError, NotFoundError, ValidationError
from .library import LibraryIndex
from .logging_config import log_event
from .schemas import EmulatedDevice, EmulatorConfig, Envelope, GatewayConfig
from .simulation.envelope import envelope_log_data, normalize_dev_eui, normalize_eui
from .simulation.pipeline import emit_uplink
from .simulation.scheduler import EmissionScheduler
from .simulation.state_store import DeviceStateStore
from .sinks import NetworkSink
from .ws import Broadcaster

logger = logging.getLogger(__name__)

CONFIG_LOCK = asyncio.Lock()


def _signature(data: Any) -> str:
    return hashlib.sha1(json.dumps(data, sort_keys=True, default=str).encode("utf-8")).hexdigest()


async def load_config_file(path: Path) -> dict | None:
    async with CONFIG_LOCK:
        try:
            with path.open("r", encoding="utf-8") as fh:
                return json.load(fh)
        except FileNotFoundError:
            logger.warning("Emulator config file %s not found; retrying later", path)
        except json.JSONDecodeError as exc:
            logger.error("Failed to parse emulator config %s: %s", path, exc)
    return None


async def save_config_file(path: Path, data: dict[str, Any]) -> None:
    async with CONFIG_LOCK:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        with tmp_path.open("w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2, ensure_ascii=False)
            fh.write("\n")

        try:
            tmp_path.replace(path)
        except OSError as exc:  # pragma: no cover - requires docker bind mount
            if exc.errno != errno.EBUSY:
                raise
            # A bind-mounted file can't be replaced atomically; copy the contents instead.
            with tmp_path.open("r", encoding="utf-8") as src, path.open("w", encoding="utf-8") as dst:
                shutil.copyfileobj(src, dst)
            tmp_path.unlink(missing_ok=True)


class EmulationManager:
    def __init__(
        self,
        *,
        library: LibraryIndex,
        store: DeviceStateStore,
        scheduler: EmissionScheduler,
        sink: NetworkSink | None,
        application_id: str,
        default_interval: float,
        broadcaster: Broadcaster | None = None,
    ) -> None:
        self.library = library
        self.store = store
        self.scheduler = scheduler
        self.sink = sink
        self.application_id = application_id
        self.default_interval = default_interval
        self.broadcaster = broadcaster
        self._devices: dict[str, EmulatedDevice] = {}
        self._signatures: dict[str, str] = {}
        self._gateways: list[GatewayConfig] = []
        self._global_signature: str | None = None

    # -------------------- config --------------------

    @property
    def devices(self) -> list[EmulatedDevice]:
        return list(self._devices.values())

    @property
    def gateways(self) -> list[GatewayConfig]:
        return list(self._gateways)

    def _validate(self, config: dict | EmulatorConfig) -> EmulatorConfig:
        if isinstance(config, EmulatorConfig):
            cfg = config
        else:
            try:
                cfg = EmulatorConfig.model_validate(config)
            except PydanticValidationError as exc:
                raise ConfigurationError(f"invalid emulator config: {exc.error_count()} error(s): {exc}") from exc

        try:
            for gateway in cfg.gateways:
                normalize_eui(gateway.eui, f"gateway {gateway.id} EUI")
            for device in cfg.devices:
                if device.profile_id not in self.library:
                    raise ConfigurationError(
                        f"device {device.id!r} references unknown profile {device.profile_id!r}"
                    )
                normalize_dev_eui(device.dev_eui)
        except ValidationError as exc:
            raise ConfigurationError(f"invalid emulator config: {exc}") from exc
        return cfg

    async def apply_config(self, config: dict | EmulatorConfig) -> dict[str, list[str]]:
        """Bring running timers in line with *config*.

        Devices whose definition changed are restarted, unchanged ones keep running, and
        disabled or removed ones are stopped. A change to the application id, default
        interval or gateway set restarts everything.
        """

        cfg = self._validate(config)
        started: list[str] = []
        stopped: list[str] = []

        globals_sig = _signature(
            {
                "application_id": cfg.application_id or self.application_id,
                "default_interval": cfg.default_interval_seconds or self.default_interval,
                "gateways": [g.model_dump() for g in cfg.gateways],
            }
        )
        if self._global_signature and self._global_signature != globals_sig:
            self.scheduler.stop_all()
            self._signatures.clear()
        self._global_signature = globals_sig

        if cfg.application_id:
            self.application_id = cfg.application_id
        if cfg.default_interval_seconds:
            self.default_interval = cfg.default_interval_seconds
        self._gateways = list(cfg.gateways)

        seen: set[str] = set()
        for device in cfg.devices:
            seen.add(device.id)
            self._devices[device.id] = device
            if not device.enabled:
                self._signatures.pop(device.id, None)
                if self.scheduler.stop_device(device.id):
                    stopped.append(device.id)
                continue

            signature = _signature(device.model_dump())
            if self._signatures.get(device.id) == signature and self.scheduler.is_running(device.id):
                continue
            self._start(device)
            self._signatures[device.id] = signature
            started.append(device.id)

        for device_id in list(self._devices):
            if device_id not in seen:
                self._devices.pop(device_id)
                self._signatures.pop(device_id, None)
                if self.scheduler.stop_device(device_id):
                    stopped.append(device_id)

        if started or stopped:
            logger.info("Applied emulator config: %d started, %d stopped", len(started), len(stopped))
        return {"started": started, "stopped": stopped}

    async def poll_config_forever(self, path: Path, interval: float) -> None:
        while True:
            config = await load_config_file(path)
            if config is not None:
                try:
                    await self.apply_config(config)
                except (EmulatorError, ValueError) as exc:
                    logger.error("Failed to apply emulator config: %s", exc)
            await asyncio.sleep(interval)

    # -------------------- devices --------------------

    def get_device(self, device_id: str) -> EmulatedDevice:
        try:
            return self._devices[device_id]
        except KeyError:
            raise NotFoundError("device", device_id) from None

    def _gateways_for(self, device: EmulatedDevice) -> list[GatewayConfig]:
        online = [g for g in self._gateways if g.is_online]
        if device.gateway_ids:
            return [g for g in online if g.id in device.gateway_ids]
        return online

    def _start(self, device: EmulatedDevice, interval: float | None = None, emit_immediately: bool = False) -> None:
        self.scheduler.start_device(
            device.id,
            interval or device.interval_seconds or self.default_interval,
            self._tick,
            emit_immediately=emit_immediately,
        )

    def start_device(self, device_id: str, interval: float | None = None, emit_immediately: bool = False) -> None:
        device = self.get_device(device_id)
        self._start(device, interval, emit_immediately)
        self._signatures[device.id] = _signature(device.model_dump())

    def stop_device(self, device_id: str) -> bool:
        self.get_device(device_id)
        return self.scheduler.stop_device(device_id)

    def stop_all(self) -> int:
        return self.scheduler.stop_all()

    def reset_device_state(self, device_id: str) -> bool:
        self.get_device(device_id)
        return self.store.reset(device_id)

    # -------------------- emission --------------------

    def emit(self, device_id: str, scenario: str | None = None, alarm: str | None = None) -> Envelope:
        device = self.get_device(device_id)
        profile = self.library.get_device(device.profile_id)
        if not scenario and not alarm:
            scenario = device.scenario
        return emit_uplink(
            device,
            profile,
            self.store,
            gateways=self._gateways_for(device),
            application_id=self.application_id,
            scenario_id=scenario,
            alarm_id=alarm,
        )

    async def deliver(self, envelope: Envelope) -> bool | None:
        delivered = None
        if self.sink is not None:
            delivered = await self.sink.send(envelope, self.application_id)
        if self.broadcaster is not None:
            await self.broadcaster.broadcast_json(envelope_log_data(envelope) | {"delivered": delivered})
        return delivered

    async def _tick(self, device_id: str) -> None:
        envelope = self.emit(device_id)
        delivered = await self.deliver(envelope)
        log_event(
            logger,
            "Uplink emitted",
            device_instance_id=device_id,
            f_cnt=envelope.uplink_message.f_cnt,
            delivered=delivered,
        )

    # -------------------- inspection --------------------

    def device_status(self, device_id: str) -> dict[str, Any]:
        device = self.get_device(device_id)
        schedule = self.scheduler.get_status(device_id)
        state = self.store.get(device_id)
        return {
            "id": device.id,
            "name": device.name,
            "profile_id": device.profile_id,
            "dev_eui": normalize_dev_eui(device.dev_eui),
            "enabled": device.enabled,
            "running": self.scheduler.is_running(device_id),
            "schedule": schedule.to_dict() if schedule else None,
            "state": state.to_dict() if state else None,
        }

    def status(self) -> dict[str, Any]:
        return {
            "application_id": self.application_id,
            "default_interval_seconds": self.default_interval,
            "gateways": [g.model_dump() for g in self._gateways],
            "devices": [self.device_status(device_id) for device_id in self._devices],
            "scheduler": self.scheduler.summary(),
        }
