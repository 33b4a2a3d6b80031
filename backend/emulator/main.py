import asyncio
import logging
from contextlib import suppress

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import load_settings
from .db import get_sessionmaker
from .deps import get_manager
from .errors import ConfigurationError, EmulatorError, NotFoundError, ValidationError
from .logging_config import configure_logging
from .manager import EmulationManager
from .persistence import restore_store, save_state_snapshots
from .routers import emulator, library

logger = logging.getLogger(__name__)

settings = load_settings()
app = FastAPI(title="LoRaWAN Device Emulator")
_poll_task: asyncio.Task | None = None

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(library.router)
app.include_router(emulator.router)

_STATUS_BY_ERROR = (
    (NotFoundError, 404),
    (ValidationError, 422),
    (ConfigurationError, 500),
)


@app.exception_handler(EmulatorError)
async def _emulator_error(request: Request, exc: EmulatorError) -> JSONResponse:
    status_code = next((code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)), 500)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "error": type(exc).__name__})


@app.get("/health")
def health(manager: EmulationManager = Depends(get_manager)):
    return {"ok": True, "active_devices": manager.scheduler.active_count}


async def _restore_snapshots() -> None:
    async with get_sessionmaker()() as session:
        await restore_store(session, get_manager().store)


async def _save_snapshots() -> None:
    async with get_sessionmaker()() as session:
        await save_state_snapshots(session, get_manager().store.all_states())


@app.on_event("startup")
async def _on_startup() -> None:
    global _poll_task
    configure_logging("lorawan-emulator", settings.log_level)
    if settings.persist_state:
        await _restore_snapshots()
    _poll_task = asyncio.create_task(
        get_manager().poll_config_forever(settings.config_path, settings.config_poll_interval)
    )


@app.on_event("shutdown")
async def _on_shutdown() -> None:
    global _poll_task
    if _poll_task:
        _poll_task.cancel()
        with suppress(asyncio.CancelledError):
            await _poll_task
        _poll_task = None
    manager = get_manager()
    await manager.scheduler.shutdown()
    if settings.persist_state:
        await _save_snapshots()
    if manager.sink is not None:
        await manager.sink.aclose()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("emulator.main:app", host="0.0.0.0", port=settings.port)
