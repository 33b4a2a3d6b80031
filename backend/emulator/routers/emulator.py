from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import load_settings
from ..db import get_db
from ..deps import get_manager
from ..errors import ConfigurationError
from ..manager import EmulationManager, save_config_file
from ..persistence import delete_state_snapshot
from ..schemas import EmitOut, EmitRequest, EmulatorConfig, StartRequest

router = APIRouter(prefix="/emulator", tags=["emulator"])


@router.get("/status")
def emulator_status(manager: EmulationManager = Depends(get_manager)):
    return manager.status()


@router.get("/devices")
def list_devices(manager: EmulationManager = Depends(get_manager)):
    return [manager.device_status(d.id) for d in manager.devices]


@router.get("/devices/{device_id}")
def get_device(device_id: str, manager: EmulationManager = Depends(get_manager)):
    return manager.device_status(device_id)


@router.post("/devices/{device_id}/emit", response_model=EmitOut)
async def emit_device(
    device_id: str,
    payload: EmitRequest | None = None,
    manager: EmulationManager = Depends(get_manager),
):
    payload = payload or EmitRequest()
    envelope = manager.emit(device_id, scenario=payload.scenario, alarm=payload.alarm)
    delivered = await manager.deliver(envelope) if payload.deliver else None
    return EmitOut(envelope=envelope, delivered=delivered)


@router.post("/devices/{device_id}/start")
async def start_device(
    device_id: str,
    payload: StartRequest | None = None,
    manager: EmulationManager = Depends(get_manager),
):
    payload = payload or StartRequest()
    manager.start_device(device_id, payload.interval_seconds, payload.emit_immediately)
    return manager.device_status(device_id)


@router.post("/devices/{device_id}/stop")
async def stop_device(device_id: str, manager: EmulationManager = Depends(get_manager)):
    stopped = manager.stop_device(device_id)
    return {"device_id": device_id, "stopped": stopped}


@router.post("/stop-all")
async def stop_all(manager: EmulationManager = Depends(get_manager)):
    return {"stopped": manager.stop_all()}


@router.get("/devices/{device_id}/state")
def get_device_state(device_id: str, manager: EmulationManager = Depends(get_manager)):
    manager.get_device(device_id)
    state = manager.store.get(device_id)
    return state.to_dict() if state else None


@router.delete("/devices/{device_id}/state", status_code=status.HTTP_200_OK)
async def reset_device_state(
    device_id: str,
    manager: EmulationManager = Depends(get_manager),
    db: AsyncSession | None = Depends(get_db),
):
    reset = manager.reset_device_state(device_id)
    if db is not None:
        # Persisted snapshot must not outlive the in-memory reset.
        await delete_state_snapshot(db, device_id)
    return {"device_id": device_id, "reset": reset}


@router.post("/config")
async def apply_config(
    config: EmulatorConfig,
    persist: bool = Query(False),
    manager: EmulationManager = Depends(get_manager),
) -> dict[str, Any]:
    try:
        result = await manager.apply_config(config)
    except ConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    if persist:
        await save_config_file(load_settings().config_path, config.model_dump(mode="json"))
    return result


@router.websocket("/ws/uplinks")
async def uplink_feed(ws: WebSocket, manager: EmulationManager = Depends(get_manager)):
    if manager.broadcaster is None:
        await ws.close()
        return
    await manager.broadcaster.connect(ws)
    try:
        while True:
            await ws.receive_text()
    except WebSocketDisconnect:
        await manager.broadcaster.disconnect(ws)
