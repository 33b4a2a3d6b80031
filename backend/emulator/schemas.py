import math
import re
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

DEVICE_ID_PATTERN = r"^[a-z0-9-]+$"
SEMVER_PATTERN = r"^\d+\.\d+\.\d+$"


# -------------------- Field specs --------------------

class _FieldBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    unit: Optional[str] = None
    description: Optional[str] = None
    static: bool = False

    @model_validator(mode="after")
    def _static_needs_default(self):
        if self.static and getattr(self, "default", None) is None:
            raise ValueError("static fields require a default value")
        return self


class FloatField(_FieldBase):
    type: Literal["float"]
    min: float
    max: float
    precision: int = Field(default=1, ge=0, le=10)
    drift: Optional[float] = Field(default=None, gt=0)
    increment: bool = False
    default: Optional[float] = None

    @model_validator(mode="after")
    def _check_bounds(self):
        if self.min > self.max:
            raise ValueError(f"min ({self.min}) must not exceed max ({self.max})")
        return self


class IntField(_FieldBase):
    type: Literal["int"]
    min: float
    max: float
    drift: Optional[float] = Field(default=None, gt=0)
    increment: bool = False
    default: Optional[int] = None

    @model_validator(mode="after")
    def _check_bounds(self):
        if self.min > self.max:
            raise ValueError(f"min ({self.min}) must not exceed max ({self.max})")
        if math.ceil(self.min) > math.floor(self.max):
            raise ValueError(f"range [{self.min}, {self.max}] contains no integer")
        return self


class BoolField(_FieldBase):
    type: Literal["bool"]
    true_probability: float = Field(default=0.5, ge=0.0, le=1.0)
    default: Optional[bool] = None


class EnumField(_FieldBase):
    type: Literal["enum"]
    values: list[str] = Field(min_length=1)
    weights: Optional[list[float]] = None
    default: Optional[str] = None

    @model_validator(mode="after")
    def _check_members(self):
        if self.weights is not None:
            if len(self.weights) != len(self.values):
                raise ValueError("weights must have one entry per enum value")
            if any(w < 0 for w in self.weights) or sum(self.weights) <= 0:
                raise ValueError("weights must be non-negative with a positive sum")
        if self.default is not None and self.default not in self.values:
            raise ValueError(f"default {self.default!r} is not one of {self.values}")
        return self


class StringField(_FieldBase):
    type: Literal["string"]
    pattern: Optional[str] = None
    default: Optional[str] = None

    @field_validator("pattern")
    @classmethod
    def _compiles(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            re.compile(value)
        return value


FieldSpec = Annotated[
    Union[FloatField, IntField, BoolField, EnumField, StringField],
    Field(discriminator="type"),
]
NumericField = (FloatField, IntField)


# -------------------- Device library --------------------

class SimulationProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    fields: dict[str, FieldSpec]

    @field_validator("fields")
    @classmethod
    def _not_empty(cls, value: dict) -> dict:
        if not value:
            raise ValueError("a simulation profile needs at least one field")
        return value


class DeviceExamples(BaseModel):
    model_config = ConfigDict(frozen=True)

    normal: dict[str, Any] = Field(default_factory=dict)
    alarm: Optional[dict[str, Any]] = None


class DeviceProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, pattern=DEVICE_ID_PATTERN)
    name: str = Field(min_length=1)
    manufacturer: str = ""
    category: str = Field(min_length=1)
    model: Optional[str] = None
    description: Optional[str] = None
    firmware_version: Optional[str] = None
    default_fport: int = Field(ge=1, le=255, validation_alias=AliasChoices("default_fport", "fport"))
    payload_format: Literal["json", "cayenne", "custom"] = "json"
    simulation_profile: SimulationProfile
    examples: DeviceExamples = Field(default_factory=DeviceExamples)

    @property
    def fields(self) -> dict[str, Any]:
        return self.simulation_profile.fields


class LibraryMetadata(BaseModel):
    version: str = Field(pattern=SEMVER_PATTERN)
    last_updated: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    categories: list[str] = Field(min_length=1)
    manufacturers: list[str] = Field(default_factory=list)


class DeviceLibrary(BaseModel):
    metadata: LibraryMetadata
    devices: list[DeviceProfile] = Field(min_length=1)

    @model_validator(mode="after")
    def _check_references(self):
        seen: set[str] = set()
        for device in self.devices:
            if device.id in seen:
                raise ValueError(f"duplicate device id {device.id!r}")
            seen.add(device.id)
            if device.category not in self.metadata.categories:
                raise ValueError(f"device {device.id!r} uses undeclared category {device.category!r}")
            if device.manufacturer and device.manufacturer not in self.metadata.manufacturers:
                raise ValueError(
                    f"device {device.id!r} uses undeclared manufacturer {device.manufacturer!r}"
                )
        return self


# -------------------- Fleet config --------------------

class GatewayConfig(BaseModel):
    id: str = Field(min_length=1)
    eui: str
    name: Optional[str] = None
    is_online: bool = True


class EmulatedDevice(BaseModel):
    id: str = Field(min_length=1, validation_alias=AliasChoices("id", "device_instance_id"))
    dev_eui: str
    name: Optional[str] = None
    profile_id: str = Field(validation_alias=AliasChoices("profile_id", "library_device_id"))
    org_id: str = ""
    site_id: str = ""
    unit_id: str = ""
    gateway_ids: list[str] = Field(default_factory=list)
    interval_seconds: Optional[float] = Field(default=None, gt=0)
    scenario: Optional[str] = None
    enabled: bool = True


class EmulatorConfig(BaseModel):
    application_id: Optional[str] = None
    default_interval_seconds: Optional[float] = Field(default=None, gt=0)
    gateways: list[GatewayConfig] = Field(default_factory=list)
    devices: list[EmulatedDevice] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_devices(self):
        ids = [d.id for d in self.devices]
        if len(ids) != len(set(ids)):
            raise ValueError("device ids must be unique")
        return self


# -------------------- Uplink envelope (TTN v3 webhook shape) --------------------

class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class ApplicationIds(_Frozen):
    application_id: str


class EndDeviceIds(_Frozen):
    device_id: str
    dev_eui: str
    application_ids: ApplicationIds


class GatewayIds(_Frozen):
    gateway_id: str
    eui: str


class RxMetadata(_Frozen):
    gateway_ids: GatewayIds
    rssi: Union[int, float]
    snr: float
    timestamp: int


class UplinkMessage(_Frozen):
    f_port: int
    f_cnt: int
    decoded_payload: dict[str, Any]
    frm_payload: str
    rx_metadata: list[RxMetadata]


class Envelope(_Frozen):
    end_device_ids: EndDeviceIds
    received_at: str
    uplink_message: UplinkMessage


# -------------------- API --------------------

class EmitRequest(BaseModel):
    scenario: Optional[str] = None
    alarm: Optional[str] = Field(default=None, validation_alias=AliasChoices("alarm", "trigger"))
    deliver: bool = True


class EmitOut(BaseModel):
    envelope: Envelope
    delivered: Optional[bool] = None


class StartRequest(BaseModel):
    interval_seconds: Optional[float] = Field(default=None, gt=0)
    emit_immediately: bool = False


class ScenarioOut(BaseModel):
    id: str
    name: str
    description: str
    overrides: dict[str, Any]
    rssi: Optional[float] = None
    snr: Optional[float] = None


class AlarmTriggerOut(ScenarioOut):
    severity: Literal["warning", "critical"]
    categories: Optional[list[str]] = None
