"""create plans, users, definitions and job ledger tables

Revision ID: 3f9a1c2d7b10
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3f9a1c2d7b10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _ledger_columns():
    return [
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("used_system_token", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cancel_requested", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "plans",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("duration_in_days", sa.Integer(), nullable=False),
        sa.Column("features", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=True, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_index(op.f("ix_plans_id"), "plans", ["id"], unique=False)
    op.create_index("ix_plans_is_active", "plans", ["is_active"], unique=False)
    op.create_index("ix_plans_price", "plans", ["price"], unique=False)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=50), nullable=False, server_default="user"),
        sa.Column("openai_api_key", sa.String(length=512), nullable=True),
        sa.Column("plan_id", sa.Integer(), nullable=True),
        sa.Column("plan_expires_at", sa.DateTime(), nullable=True),
        sa.Column("transcriptions_used_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("transcription_minutes_used", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("agent_uses_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("assistant_uses_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("user_agents_created_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_agent_creation_reset_date", sa.DateTime(), nullable=True),
        sa.Column("assistants_created_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_assistant_creation_reset_date", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
        sa.ForeignKeyConstraint(["plan_id"], ["plans.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index("ix_users_plan_expires_at", "users", ["plan_expires_at"], unique=False)

    op.create_table(
        "subscription_orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("plan_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("gateway_reference", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["plan_id"], ["plans.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_subscription_orders_id"), "subscription_orders", ["id"], unique=False)
    op.create_index(op.f("ix_subscription_orders_user_id"), "subscription_orders", ["user_id"], unique=False)
    op.create_index(op.f("ix_subscription_orders_gateway_reference"), "subscription_orders", ["gateway_reference"], unique=False)

    op.create_table(
        "agents",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("prompt_template", sa.Text(), nullable=False),
        sa.Column("output_format", sa.String(length=10), nullable=False, server_default="text"),
        sa.Column("model_used", sa.String(), nullable=False, server_default="gpt-3.5-turbo"),
        sa.Column("is_system_agent", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("requires_user_openai_token", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("plan_specific", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("allowed_plan_ids", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_agents_id"), "agents", ["id"], unique=False)
    op.create_index(op.f("ix_agents_created_by_user_id"), "agents", ["created_by_user_id"], unique=False)

    op.create_table(
        "assistants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("instructions", sa.Text(), nullable=False),
        sa.Column("model", sa.String(), nullable=False, server_default="gpt-4o"),
        sa.Column("execution_mode", sa.String(length=20), nullable=False, server_default="FIXO"),
        sa.Column("knowledge_base", sa.JSON(), nullable=False),
        sa.Column("run_configuration", sa.JSON(), nullable=False),
        sa.Column("openai_assistant_id", sa.String(), nullable=True),
        sa.Column("openai_vector_store_id", sa.String(), nullable=True),
        sa.Column("output_format", sa.String(length=10), nullable=False, server_default="text"),
        sa.Column("is_system_assistant", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("plan_specific", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("allowed_plan_ids", sa.JSON(), nullable=False),
        sa.Column("requires_user_openai_token", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("openai_assistant_id"),
        sa.UniqueConstraint("openai_vector_store_id"),
    )
    op.create_index(op.f("ix_assistants_id"), "assistants", ["id"], unique=False)
    op.create_index(op.f("ix_assistants_created_by_user_id"), "assistants", ["created_by_user_id"], unique=False)

    op.create_table(
        "transcriptions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("audio_path", sa.String(), nullable=True),
        sa.Column("original_file_name", sa.String(), nullable=True),
        sa.Column("file_size_kb", sa.Numeric(12, 2), nullable=True),
        sa.Column("duration_seconds", sa.Numeric(10, 2), nullable=True),
        sa.Column("transcription_text", sa.Text(), nullable=True),
        *_ledger_columns(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_transcriptions_id"), "transcriptions", ["id"], unique=False)
    op.create_index(op.f("ix_transcriptions_user_id"), "transcriptions", ["user_id"], unique=False)
    op.create_index(op.f("ix_transcriptions_status"), "transcriptions", ["status"], unique=False)

    op.create_table(
        "agent_actions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("agent_id", sa.Integer(), nullable=False),
        sa.Column("transcription_id", sa.Integer(), nullable=True),
        sa.Column("input_text", sa.Text(), nullable=False),
        sa.Column("output_text", sa.Text(), nullable=True),
        sa.Column("output_format", sa.String(length=10), nullable=False, server_default="text"),
        sa.Column("output_file_path", sa.String(), nullable=True),
        *_ledger_columns(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["agent_id"], ["agents.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["transcription_id"], ["transcriptions.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_agent_actions_id"), "agent_actions", ["id"], unique=False)
    op.create_index(op.f("ix_agent_actions_user_id"), "agent_actions", ["user_id"], unique=False)
    op.create_index(op.f("ix_agent_actions_agent_id"), "agent_actions", ["agent_id"], unique=False)
    op.create_index(op.f("ix_agent_actions_status"), "agent_actions", ["status"], unique=False)

    op.create_table(
        "assistant_histories",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("assistant_id", sa.Integer(), nullable=True),
        sa.Column("transcription_id", sa.Integer(), nullable=False),
        sa.Column("input_text", sa.Text(), nullable=False),
        sa.Column("output_text", sa.Text(), nullable=True),
        sa.Column("output_format", sa.String(length=10), nullable=False, server_default="text"),
        sa.Column("output_file_path", sa.String(), nullable=True),
        sa.Column("openai_thread_id", sa.String(), nullable=True),
        sa.Column("openai_run_id", sa.String(), nullable=True),
        sa.Column("openai_run_status", sa.String(length=30), nullable=True),
        sa.Column("dynamic_prompt", sa.Text(), nullable=True),
        *_ledger_columns(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["assistant_id"], ["assistants.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["transcription_id"], ["transcriptions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_assistant_histories_id"), "assistant_histories", ["id"], unique=False)
    op.create_index(op.f("ix_assistant_histories_user_id"), "assistant_histories", ["user_id"], unique=False)
    op.create_index(op.f("ix_assistant_histories_assistant_id"), "assistant_histories", ["assistant_id"], unique=False)
    op.create_index(op.f("ix_assistant_histories_transcription_id"), "assistant_histories", ["transcription_id"], unique=False)
    op.create_index(op.f("ix_assistant_histories_status"), "assistant_histories", ["status"], unique=False)


def downgrade() -> None:
    op.drop_table("assistant_histories")
    op.drop_table("agent_actions")
    op.drop_table("transcriptions")
    op.drop_table("assistants")
    op.drop_table("agents")
    op.drop_table("subscription_orders")
    op.drop_index("ix_users_plan_expires_at", table_name="users")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
    op.drop_index("ix_plans_price", table_name="plans")
    op.drop_index("ix_plans_is_active", table_name="plans")
    op.drop_index(op.f("ix_plans_id"), table_name="plans")
    op.drop_table("plans")
