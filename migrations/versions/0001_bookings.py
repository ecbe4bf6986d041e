"""bookings table"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("date", sa.String(length=10), nullable=False),
        sa.Column("time", sa.String(length=5), nullable=False),
        sa.Column("guests", sa.Integer(), nullable=True),
        sa.Column("occasion", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("date", "time", name="uq_bookings_date_time"),
    )
    op.create_index("ix_bookings_date", "bookings", ["date"])


def downgrade():
    op.drop_index("ix_bookings_date", table_name="bookings")
    op.drop_table("bookings")
