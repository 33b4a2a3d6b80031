"""Save and restore device simulation state through SQLAlchemy."""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from .models import DeviceStateRecord
from .simulation.state import DeviceSimulationState
from .simulation.state_store import DeviceStateStore

logger = logging.getLogger(__name__)

_UPSERT_COLUMNS = (
    "profile_id",
    "f_cnt",
    "emission_sequence",
    "counters",
    "last_values",
    "last_emitted_at",
)


def _row(state: DeviceSimulationState) -> dict:
    return {
        "device_instance_id": state.device_instance_id,
        "profile_id": state.profile_id,
        "f_cnt": state.f_cnt,
        "emission_sequence": state.emission_sequence,
        "counters": dict(state.counters),
        "last_values": dict(state.last_values),
        "last_emitted_at": state.last_emitted_at,
        "created_at": state.created_at,
    }


def _to_state(record: DeviceStateRecord) -> DeviceSimulationState:
    return DeviceSimulationState.from_dict(
        {
            "device_instance_id": record.device_instance_id,
            "profile_id": record.profile_id,
            "f_cnt": record.f_cnt,
            "emission_sequence": record.emission_sequence,
            "counters": record.counters,
            "last_values": record.last_values,
            "last_emitted_at": record.last_emitted_at,
            "created_at": record.created_at,
        }
    )


async def save_state_snapshots(session: AsyncSession, states: Iterable[DeviceSimulationState]) -> int:
    rows = [_row(s) for s in states]
    if not rows:
        return 0

    stmt = pg_insert(DeviceStateRecord).values(rows)
    stmt = stmt.on_conflict_do_update(
        index_elements=[DeviceStateRecord.device_instance_id],
        set_={col: stmt.excluded[col] for col in _UPSERT_COLUMNS} | {"saved_at": func.now()},
    )
    await session.execute(stmt)
    await session.commit()
    logger.info("Saved %d device state snapshots", len(rows))
    return len(rows)


async def load_state_snapshots(session: AsyncSession) -> list[DeviceSimulationState]:
    result = await session.execute(select(DeviceStateRecord))
    return [_to_state(record) for record in result.scalars()]


async def delete_state_snapshot(session: AsyncSession, device_instance_id: str) -> None:
    await session.execute(
        delete(DeviceStateRecord).where(DeviceStateRecord.device_instance_id == device_instance_id)
    )
    await session.commit()


async def restore_store(session: AsyncSession, store: DeviceStateStore) -> int:
    states = await load_state_snapshots(session)
    for state in states:
        store.update(state)
    logger.info("Restored %d device states from snapshots", len(states))
    return len(states)
