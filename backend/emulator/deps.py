from functools import lru_cache

from .config import load_settings
from .library import LibraryIndex, default_library
from .manager import EmulationManager
from .simulation.scheduler import EmissionScheduler
from .simulation.state_store import state_store
from .sinks import WebhookSink
from .ws import broadcaster


def get_library() -> LibraryIndex:
    return default_library()


@lru_cache(maxsize=1)
def get_manager() -> EmulationManager:
    settings = load_settings()
    sink = None
    if settings.webhook_url:
        sink = WebhookSink(
            settings.webhook_url,
            api_key=settings.webhook_api_key,
            timeout=settings.webhook_timeout,
            max_retries=settings.webhook_max_retries,
            max_inflight=settings.max_inflight,
        )
    return EmulationManager(
        library=default_library(),
        store=state_store,
        scheduler=EmissionScheduler(),
        sink=sink,
        application_id=settings.application_id,
        default_interval=settings.default_interval_seconds,
        broadcaster=broadcaster,
    )
