"""Assemble TTN v3 webhook-shaped uplink envelopes."""

from __future__ import annotations

import hashlib
import random
import re
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from ..errors import ValidationError
from ..schemas import (
    ApplicationIds,
    DeviceProfile,
    EmulatedDevice,
    EndDeviceIds,
    Envelope,
    GatewayConfig,
    GatewayIds,
    RxMetadata,
    UplinkMessage,
)
from .payload_codec import encode_frm_payload
from .scenarios import SignalOverrides
from .state import DeviceSimulationState

DEVICE_ID_PREFIX = "sensor-"
RSSI_RANGE = (-120.0, -30.0)
SNR_RANGE = (-20.0, 15.0)
RSSI_BASE, RSSI_SPREAD = -65.0, 5.0
SNR_BASE, SNR_SPREAD = 7.5, 2.0

_EUI_SEPARATORS = re.compile(r"[:\-\s]")
_EUI = re.compile(r"^[0-9A-F]{16}$")


def normalize_eui(raw: str, what: str = "DevEUI") -> str:
    if not isinstance(raw, str):
        raise ValidationError(f"{what} must be a string, got {raw!r}")
    eui = _EUI_SEPARATORS.sub("", raw).upper()
    if not _EUI.match(eui):
        raise ValidationError(f"{what} must be 16 hex characters, got {raw!r}")
    return eui


def normalize_dev_eui(raw: str) -> str:
    return normalize_eui(raw, "DevEUI")


def derive_device_id(dev_eui: str) -> str:
    return DEVICE_ID_PREFIX + normalize_dev_eui(dev_eui).lower()


def _as_utc(when: datetime | None) -> datetime:
    if when is None:
        return datetime.now(timezone.utc)
    if when.tzinfo is None:
        return when.replace(tzinfo=timezone.utc)
    return when.astimezone(timezone.utc)


def format_received_at(when: datetime | None = None) -> str:
    """UTC timestamp with millisecond precision and a ``Z`` suffix."""

    when = _as_utc(when)
    return when.strftime("%Y-%m-%dT%H:%M:%S.") + f"{when.microsecond // 1000:03d}Z"


def signal_rng(dev_eui: str, f_cnt: int) -> random.Random:
    h = hashlib.sha256(f"{dev_eui}|{f_cnt}|rx".encode("utf-8")).hexdigest()
    return random.Random(int(h[:16], 16))


def _clip(value: float, bounds: tuple[float, float]) -> float:
    return max(bounds[0], min(bounds[1], value))


def generate_rx_metadata(
    gateways: Sequence[GatewayConfig],
    rng: random.Random,
    timestamp_ms: int,
    signal_overrides: SignalOverrides | None = None,
) -> list[RxMetadata]:
    records = []
    for gateway in gateways:
        rssi = int(round(_clip(RSSI_BASE + rng.uniform(-RSSI_SPREAD, RSSI_SPREAD), RSSI_RANGE)))
        snr = round(_clip(SNR_BASE + rng.uniform(-SNR_SPREAD, SNR_SPREAD), SNR_RANGE), 1)
        if signal_overrides is not None:
            if signal_overrides.rssi is not None:
                rssi = signal_overrides.rssi
            if signal_overrides.snr is not None:
                snr = signal_overrides.snr
        records.append(
            RxMetadata(
                gateway_ids=GatewayIds(
                    gateway_id=gateway.id,
                    eui=normalize_eui(gateway.eui, f"gateway {gateway.id} EUI"),
                ),
                rssi=rssi,
                snr=snr,
                timestamp=timestamp_ms,
            )
        )
    return records


def build_envelope(
    device: EmulatedDevice,
    gateways: GatewayConfig | Sequence[GatewayConfig],
    fields: Mapping[str, Any],
    profile: DeviceProfile,
    state: DeviceSimulationState,
    application_id: str,
    *,
    signal_overrides: SignalOverrides | None = None,
    received_at: datetime | None = None,
    rng: random.Random | None = None,
) -> Envelope:
    """Wrap *fields* in an uplink envelope for *device*.

    ``f_cnt`` is taken from *state* as-is, so pass the state returned by the generator
    (already incremented). Signal values come from *rng*, which defaults to one seeded
    by the DevEUI and frame counter.
    """

    if isinstance(gateways, GatewayConfig):
        gateways = [gateways]
    if not gateways:
        raise ValidationError(f"device {device.id!r} has no gateway to receive its uplink")
    if not application_id:
        raise ValidationError("application_id is required")

    dev_eui = normalize_dev_eui(device.dev_eui)
    when = _as_utc(received_at)
    rng = rng or signal_rng(dev_eui, state.f_cnt)
    payload = dict(fields)

    return Envelope(
        end_device_ids=EndDeviceIds(
            device_id=DEVICE_ID_PREFIX + dev_eui.lower(),
            dev_eui=dev_eui,
            application_ids=ApplicationIds(application_id=application_id),
        ),
        received_at=format_received_at(when),
        uplink_message=UplinkMessage(
            f_port=profile.default_fport,
            f_cnt=state.f_cnt,
            decoded_payload=payload,
            frm_payload=encode_frm_payload(payload),
            rx_metadata=generate_rx_metadata(
                gateways, rng, int(when.timestamp() * 1000), signal_overrides
            ),
        ),
    )


def envelope_log_data(envelope: Envelope) -> dict[str, Any]:
    uplink = envelope.uplink_message
    first = uplink.rx_metadata[0] if uplink.rx_metadata else None
    return {
        "device_id": envelope.end_device_ids.device_id,
        "dev_eui": envelope.end_device_ids.dev_eui,
        "application_id": envelope.end_device_ids.application_ids.application_id,
        "received_at": envelope.received_at,
        "f_port": uplink.f_port,
        "f_cnt": uplink.f_cnt,
        "payload_keys": sorted(uplink.decoded_payload),
        "gateway_count": len(uplink.rx_metadata),
        "rssi": first.rssi if first else None,
        "snr": first.snr if first else None,
    }
