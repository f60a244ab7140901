"""account security tables

Revision ID: 0001_account_security
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


revision = "0001_account_security"
down_revision = None
branch_labels = None
depends_on = None

account_status = sa.Enum("ACTIVE", "INACTIVE", "SUSPENDED", name="accountstatus")
deleted_state = sa.Enum("NOT_DELETED", "SOFT_DELETED", "HARD_DELETED", name="deletedstate")
otp_purpose = sa.Enum("ACTIVATION", "PASSWORD_RESET", name="otppurpose")


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("accountId", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("username", sa.String(length=50), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=30), nullable=False),
        sa.Column("passwordHash", sa.String(length=1024), nullable=False),
        sa.Column("salt", sa.String(length=64), nullable=False),
        sa.Column("isActive", sa.Boolean(), nullable=False),
        sa.Column("status", account_status, nullable=False),
        sa.Column("deletedState", deleted_state, nullable=False),
        sa.Column("attemptCount", sa.Integer(), nullable=False),
        sa.Column("isLocked", sa.Boolean(), nullable=False),
        sa.Column("lockedUntil", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("createdOn", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updatedOn", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("lastLoginOn", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    op.create_index("ix_accounts_id", "accounts", ["id"])
    op.create_index("ix_accounts_accountId", "accounts", ["accountId"], unique=True)
    op.create_index("ix_accounts_username", "accounts", ["username"], unique=True)
    op.create_index("ix_accounts_email", "accounts", ["email"], unique=True)

    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=50), nullable=False, unique=True),
        sa.Column("description", sa.String(length=255), nullable=True),
    )
    op.create_index("ix_roles_id", "roles", ["id"])

    op.create_table(
        "client_roles",
        sa.Column("accountId", sa.Integer(), sa.ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("roleId", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    )

    op.create_table(
        "otp_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("purpose", otp_purpose, nullable=False),
        sa.Column("code", sa.String(length=10), nullable=False),
        sa.Column("generatedOn", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("validUpto", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("consumedOn", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.UniqueConstraint("email", "purpose", name="uq_otp_records_email_purpose"),
    )
    op.create_index("ix_otp_records_id", "otp_records", ["id"])
    op.create_index("ix_otp_records_email", "otp_records", ["email"])


def downgrade() -> None:
    op.drop_index("ix_otp_records_email", table_name="otp_records")
    op.drop_index("ix_otp_records_id", table_name="otp_records")
    op.drop_table("otp_records")
    op.drop_table("client_roles")
    op.drop_index("ix_roles_id", table_name="roles")
    op.drop_table("roles")
    op.drop_index("ix_accounts_email", table_name="accounts")
    op.drop_index("ix_accounts_username", table_name="accounts")
    op.drop_index("ix_accounts_accountId", table_name="accounts")
    op.drop_index("ix_accounts_id", table_name="accounts")
    op.drop_table("accounts")
    otp_purpose.drop(op.get_bind(), checkfirst=True)
    deleted_state.drop(op.get_bind(), checkfirst=True)
    account_status.drop(op.get_bind(), checkfirst=True)
