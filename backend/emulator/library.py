"""Device profile library: loading, validation and lookup."""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .errors import ConfigurationError, NotFoundError
from .library_data import DEFAULT_LIBRARY
from .schemas import DeviceLibrary, DeviceProfile

logger = logging.getLogger(__name__)


def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors()[:5]:
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def load_library(data: dict[str, Any]) -> DeviceLibrary:
    try:
        return DeviceLibrary.model_validate(data)
    except PydanticValidationError as exc:
        raise ConfigurationError(f"invalid device library: {_describe(exc)}") from exc


def load_library_file(path: Path) -> DeviceLibrary:
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"device library {path} not found") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"device library {path} is not valid JSON: {exc}") from exc
    return load_library(data)


def load_profile(data: dict[str, Any]) -> DeviceProfile:
    try:
        return DeviceProfile.model_validate(data)
    except PydanticValidationError as exc:
        raise ConfigurationError(f"invalid device profile: {_describe(exc)}") from exc


class LibraryIndex:
    """Lookup tables over a validated ``DeviceLibrary``."""

    def __init__(self, library: DeviceLibrary):
        self.library = library
        self._by_id: dict[str, DeviceProfile] = {d.id: d for d in library.devices}
        self._by_category: dict[str, list[DeviceProfile]] = {}
        self._by_manufacturer: dict[str, list[DeviceProfile]] = {}
        for device in library.devices:
            self._by_category.setdefault(device.category, []).append(device)
            self._by_manufacturer.setdefault(device.manufacturer, []).append(device)
        logger.info(
            "Loaded device library v%s with %d devices",
            library.metadata.version,
            len(library.devices),
        )

    def get_device(self, profile_id: str) -> DeviceProfile:
        try:
            return self._by_id[profile_id]
        except KeyError:
            raise NotFoundError("device profile", profile_id) from None

    def list_devices(
        self,
        category: str | None = None,
        manufacturer: str | None = None,
        search: str | None = None,
    ) -> list[DeviceProfile]:
        devices = list(self.library.devices)
        if category:
            devices = [d for d in devices if d.category == category]
        if manufacturer:
            devices = [d for d in devices if d.manufacturer.lower() == manufacturer.lower()]
        if search:
            needle = search.lower()
            devices = [
                d
                for d in devices
                if needle in d.id or needle in d.name.lower() or needle in (d.description or "").lower()
            ]
        return devices

    def categories(self) -> list[str]:
        return sorted(self._by_category)

    def manufacturers(self) -> list[str]:
        return sorted(m for m in self._by_manufacturer if m)

    def __contains__(self, profile_id: object) -> bool:
        return profile_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)


@lru_cache(maxsize=1)
def default_library() -> LibraryIndex:
    return LibraryIndex(load_library(DEFAULT_LIBRARY))
