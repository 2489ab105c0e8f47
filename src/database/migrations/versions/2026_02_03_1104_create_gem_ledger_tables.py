"""Create gem ledger tables and seed feature costs

Revision ID: 3c9d1f04a2b7
Revises:
Create Date: 2026-02-03 11:04:12.418227

"""

import uuid

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3c9d1f04a2b7"
down_revision = None
branch_labels = None
depends_on = None


SEED_COSTS = [
    ("dress-change", "Dress Change", 15, "high-impact"),
    ("apply-makeup", "Apply Makeup", 15, "high-impact"),
    ("generate-character-image", "Character Generator", 15, "high-impact"),
    ("pose-transfer", "Pose Transfer", 15, "high-impact"),
    ("face-swap", "Face Swap", 15, "high-impact"),
    ("cinematic-transform", "Cinematic Studio", 15, "high-impact"),
    ("extract-dress-to-dummy", "Dress Extractor", 15, "high-impact"),
    ("generate-background", "Background Creator", 15, "high-impact"),
    ("enhance-photo", "Photography Studio", 12, "studio-utility"),
    ("apply-branding", "Branding Studio", 12, "studio-utility"),
    ("remove-people-from-image", "Background Saver", 12, "studio-utility"),
    ("generate-caption", "Caption Studio", 1, "quick-tools"),
    ("extract-image-prompt", "Prompt Extractor", 1, "quick-tools"),
    ("refine-prompt", "Prompt Refiner", 1, "quick-tools"),
]


def upgrade() -> None:
    op.create_table(
        "user_gems",
        sa.Column("user_id", sa.Uuid(), primary_key=True),
        sa.Column("gems_balance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("subscription_type", sa.String(), nullable=True),
        sa.Column("subscription_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "gems_balance >= 0", name="ck_user_gems_balance_non_negative"
        ),
    )
    op.create_table(
        "gem_transactions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("gems_amount", sa.Integer(), nullable=False),
        sa.Column("gems_balance_after", sa.Integer(), nullable=False),
        sa.Column("transaction_type", sa.String(), nullable=False),
        sa.Column("feature_used", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_gem_transactions_user_id", "gem_transactions", ["user_id"]
    )
    feature_costs = op.create_table(
        "feature_gem_costs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("feature_key", sa.String(), nullable=False, unique=True),
        sa.Column("feature_name", sa.String(), nullable=False),
        sa.Column("gem_cost", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("gem_cost >= 0", name="ck_feature_gem_costs_non_negative"),
    )
    op.create_table(
        "generation_history",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("feature_name", sa.String(), nullable=False),
        sa.Column("input_images", sa.JSON(), nullable=True),
        sa.Column("output_images", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_generation_history_user_id", "generation_history", ["user_id"]
    )
    op.create_table(
        "profiles",
        sa.Column("user_id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("is_blocked", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        "user_roles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.UniqueConstraint("user_id", "role", name="uq_user_roles"),
    )
    op.create_index("ix_user_roles_user_id", "user_roles", ["user_id"])

    op.bulk_insert(
        feature_costs,
        [
            {
                "id": uuid.uuid4(),
                "feature_key": key,
                "feature_name": name,
                "gem_cost": cost,
                "category": category,
                "is_active": True,
            }
            for key, name, cost, category in SEED_COSTS
        ],
    )


def downgrade() -> None:
    op.drop_index("ix_user_roles_user_id", table_name="user_roles")
    op.drop_table("user_roles")
    op.drop_table("profiles")
    op.drop_index("ix_generation_history_user_id", table_name="generation_history")
    op.drop_table("generation_history")
    op.drop_table("feature_gem_costs")
    op.drop_index("ix_gem_transactions_user_id", table_name="gem_transactions")
    op.drop_table("gem_transactions")
    op.drop_table("user_gems")
