from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class DeviceStateRecord(Base):
    """Snapshot of one device instance's simulation state."""

    __tablename__ = "device_sim_states"
    device_instance_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    profile_id: Mapped[str] = mapped_column(String(120), index=True, nullable=False, default="")
    f_cnt: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    emission_sequence: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    counters: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    last_values: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    last_emitted_at: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[str] = mapped_column(String(40), nullable=False)
    saved_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
