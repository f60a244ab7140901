"""otp record version column

Revision ID: 0002_otp_record_version
Revises: 0001_account_security
Create Date: 2026-10-18 15:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


revision = "0002_otp_record_version"
down_revision = "0001_account_security"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("otp_records") as batch_op:
        batch_op.add_column(sa.Column("version", sa.Integer(), nullable=False, server_default="1"))


def downgrade() -> None:
    with op.batch_alter_table("otp_records") as batch_op:
        batch_op.drop_column("version")
