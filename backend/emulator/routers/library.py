from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..deps import get_library
from ..library import LibraryIndex
from ..schemas import AlarmTriggerOut, DeviceProfile, ScenarioOut
from ..simulation.scenarios import (
    ALARM_TRIGGERS,
    SCENARIOS,
    AlarmTrigger,
    Scenario,
    get_device_alarms,
    get_device_scenarios,
)

router = APIRouter(prefix="/library", tags=["library"])


def to_scenario_out(s: Scenario) -> ScenarioOut:
    signal = s.signal_overrides
    return ScenarioOut(
        id=s.id,
        name=s.name,
        description=s.description,
        overrides=dict(s.overrides),
        rssi=signal.rssi if signal else None,
        snr=signal.snr if signal else None,
    )


def to_alarm_out(t: AlarmTrigger) -> AlarmTriggerOut:
    signal = t.signal_overrides
    return AlarmTriggerOut(
        id=t.id,
        name=t.name,
        description=t.description,
        severity=t.severity,
        overrides=dict(t.overrides),
        rssi=signal.rssi if signal else None,
        snr=signal.snr if signal else None,
        categories=sorted(t.categories) if t.categories is not None else None,
    )


@router.get("/devices", response_model=list[DeviceProfile])
def list_devices(
    category: Optional[str] = None,
    manufacturer: Optional[str] = None,
    q: Optional[str] = Query(None, min_length=1),
    library: LibraryIndex = Depends(get_library),
):
    return library.list_devices(category=category, manufacturer=manufacturer, search=q)


@router.get("/categories")
def list_categories(library: LibraryIndex = Depends(get_library)):
    return {
        "version": library.library.metadata.version,
        "categories": library.categories(),
        "manufacturers": library.manufacturers(),
    }


@router.get("/devices/{profile_id}", response_model=DeviceProfile)
def get_device(profile_id: str, library: LibraryIndex = Depends(get_library)):
    return library.get_device(profile_id)


@router.get("/devices/{profile_id}/scenarios", response_model=list[ScenarioOut])
def device_scenarios(profile_id: str, library: LibraryIndex = Depends(get_library)):
    return [to_scenario_out(s) for s in get_device_scenarios(library.get_device(profile_id))]


@router.get("/devices/{profile_id}/alarms", response_model=list[AlarmTriggerOut])
def device_alarms(profile_id: str, library: LibraryIndex = Depends(get_library)):
    return [to_alarm_out(t) for t in get_device_alarms(library.get_device(profile_id))]


@router.get("/scenarios", response_model=list[ScenarioOut])
def list_scenarios():
    return [to_scenario_out(s) for s in SCENARIOS.values()]


@router.get("/alarms", response_model=list[AlarmTriggerOut])
def list_alarms():
    return [to_alarm_out(t) for t in ALARM_TRIGGERS.values()]
