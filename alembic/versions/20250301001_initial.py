"""Initial Slotbook schema."""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "20250301001"
down_revision = None
branch_labels = None
depends_on = None


tenant_status_enum = sa.Enum(
    "TRIAL", "ACTIVE", "SUSPENDED", "CANCELLED", name="tenant_status"
)
weekday_enum = sa.Enum(
    "MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY", "SUNDAY",
    name="weekday",
)
block_type_enum = sa.Enum(
    "WORKING_HOURS", "BREAK", "VACATION", name="schedule_block_type"
)
appointment_status_enum = sa.Enum(
    "SCHEDULED", "FULFILLED", "CANCELLED", name="appointment_status"
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False
        ),
    ]


def _tenant_column() -> sa.Column:
    return sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False)


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    op.create_table(
        "tenants",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("status", tenant_status_enum, nullable=False, server_default="TRIAL"),
        sa.Column("timezone", sa.String(length=64), nullable=True),
        sa.Column("settings", postgresql.JSONB(), nullable=True),
        sa.UniqueConstraint("name", name="uq_tenants_name"),
    )

    op.create_table(
        "locations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        *_timestamps(),
        _tenant_column(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("address", sa.String(length=512), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_locations_tenant_id", "locations", ["tenant_id"], unique=False)

    op.create_table(
        "employees",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        *_timestamps(),
        _tenant_column(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_employees_tenant_id", "employees", ["tenant_id"], unique=False)

    op.create_table(
        "services",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        *_timestamps(),
        _tenant_column(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("duration_min", sa.Integer(), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=True),
        sa.CheckConstraint("duration_min > 0", name="ck_services_positive_duration"),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_services_tenant_id", "services", ["tenant_id"], unique=False)

    op.create_table(
        "schedule_blocks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        *_timestamps(),
        _tenant_column(),
        sa.Column("employee_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("location_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("weekday", weekday_enum, nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("block_type", block_type_enum, nullable=False),
        sa.CheckConstraint("start_time < end_time", name="ck_schedule_blocks_start_before_end"),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_schedule_blocks_tenant_id", "schedule_blocks", ["tenant_id"], unique=False)
    op.create_index("ix_schedule_blocks_employee_id", "schedule_blocks", ["employee_id"], unique=False)
    op.create_index("ix_schedule_blocks_location_id", "schedule_blocks", ["location_id"], unique=False)

    op.create_table(
        "appointments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        *_timestamps(),
        _tenant_column(),
        sa.Column("service_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("location_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("employee_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", appointment_status_enum, nullable=False, server_default="SCHEDULED"),
        sa.Column("booked_by", sa.String(length=255), nullable=True),
        sa.Column("booked_by_name", sa.String(length=255), nullable=True),
        sa.Column("user_id", sa.String(length=255), nullable=True),
        sa.Column("canceled_by", sa.String(length=255), nullable=True),
        sa.Column("cancel_reason", sa.Text(), nullable=True),
        sa.Column("fulfillment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_appointments_tenant_id", "appointments", ["tenant_id"], unique=False)
    op.create_index("ix_appointments_user_id", "appointments", ["user_id"], unique=False)
    op.create_index(
        "ix_appointments_employee_start", "appointments", ["employee_id", "start_time"], unique=False
    )
    op.create_index(
        "ix_appointments_tenant_status_start",
        "appointments",
        ["tenant_id", "status", "start_time"],
        unique=False,
    )

    # Two blocking appointments of one employee may never share time.
    op.execute(
        """
        ALTER TABLE appointments
        ADD CONSTRAINT ex_appointments_employee_no_overlap
        EXCLUDE USING gist (
            employee_id WITH =,
            tstzrange(start_time, end_time, '[)') WITH &&
        )
        WHERE (status IN ('SCHEDULED', 'FULFILLED'))
        """
    )


def downgrade() -> None:
    op.execute(
        "ALTER TABLE appointments DROP CONSTRAINT IF EXISTS ex_appointments_employee_no_overlap"
    )
    op.drop_table("appointments")
    op.drop_table("schedule_blocks")
    op.drop_table("services")
    op.drop_table("employees")
    op.drop_table("locations")
    op.drop_table("tenants")

    bind = op.get_bind()
    for enum_type in (
        appointment_status_enum,
        block_type_enum,
        weekday_enum,
        tenant_status_enum,
    ):
        enum_type.drop(bind, checkfirst=True)
