"""create device simulation state snapshots"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "5e1f0c7d2a91"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "device_sim_states",
        sa.Column("device_instance_id", sa.String(length=64), primary_key=True),
        sa.Column("profile_id", sa.String(length=120), nullable=False, server_default=""),
        sa.Column("f_cnt", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("emission_sequence", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column(
            "counters",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "last_values",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("last_emitted_at", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.String(length=40), nullable=False),
        sa.Column(
            "saved_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index(
        op.f("ix_device_sim_states_profile_id"),
        "device_sim_states",
        ["profile_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_device_sim_states_profile_id"), table_name="device_sim_states")
    op.drop_table("device_sim_states")
