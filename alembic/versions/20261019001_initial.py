"""Initial clinic schema."""

from alembic import op
import sqlalchemy as sa

revision = "20261019001"
down_revision = None
branch_labels = None
depends_on = None

identity_role = sa.Enum("UNASSIGNED", "DOCTOR", "PATIENT", name="identity_role")
booking_status = sa.Enum(
    "PENDING", "CONFIRMED", "SCHEDULED", "COMPLETED", "CANCELLED", name="booking_status"
)
payment_status = sa.Enum("PENDING", "PAID", name="payment_status")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "identities",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone_number", sa.String(length=32), nullable=True),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("age", sa.Integer(), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("role", identity_role, nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("prescription_ids", sa.JSON(), nullable=False),
        sa.Column("booking_ids", sa.JSON(), nullable=False),
        sa.UniqueConstraint("email", name="uq_identities_email"),
        sa.UniqueConstraint("phone_number", name="uq_identities_phone_number"),
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column("patient_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("doctor_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.String(length=32), nullable=False),
        sa.Column("status", booking_status, nullable=False),
        sa.Column("issue", sa.Text(), nullable=False),
        sa.Column("patient_name", sa.String(length=255), nullable=True),
        sa.Column("patient_email", sa.String(length=255), nullable=True),
        sa.Column("patient_phone", sa.String(length=32), nullable=True),
        sa.Column("patient_age", sa.Integer(), nullable=True),
        sa.Column("patient_address", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["patient_id"], ["identities.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["doctor_id"], ["identities.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_bookings_patient_id", "bookings", ["patient_id"], unique=False)
    op.create_index("ix_bookings_doctor_id", "bookings", ["doctor_id"], unique=False)
    op.create_index(
        "ix_bookings_doctor_slot", "bookings", ["doctor_id", "date", "time"], unique=False
    )

    op.create_table(
        "prescriptions",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column("doctor_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("patient_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("physical_examiner_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("booking_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("prescription_text", sa.Text(), nullable=True),
        sa.Column("medications", sa.JSON(), nullable=False),
        sa.Column("diagnosis", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("notes", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("vitals", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("complaints", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("tests", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("investigation", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("patient_history", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("treatment_plan", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("follow_up_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("date_issued", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("shareable_id", sa.String(length=64), nullable=False),
        sa.Column("payment_status", payment_status, nullable=False),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_amount", sa.Float(), nullable=True),
        sa.ForeignKeyConstraint(["doctor_id"], ["identities.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["patient_id"], ["identities.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["physical_examiner_id"], ["identities.id"], ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("shareable_id", name="uq_prescriptions_shareable_id"),
    )
    op.create_index("ix_prescriptions_doctor_id", "prescriptions", ["doctor_id"], unique=False)
    op.create_index("ix_prescriptions_patient_id", "prescriptions", ["patient_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_prescriptions_patient_id", table_name="prescriptions")
    op.drop_index("ix_prescriptions_doctor_id", table_name="prescriptions")
    op.drop_table("prescriptions")
    op.drop_index("ix_bookings_doctor_slot", table_name="bookings")
    op.drop_index("ix_bookings_doctor_id", table_name="bookings")
    op.drop_index("ix_bookings_patient_id", table_name="bookings")
    op.drop_table("bookings")
    op.drop_table("identities")
    payment_status.drop(op.get_bind(), checkfirst=True)
    booking_status.drop(op.get_bind(), checkfirst=True)
    identity_role.drop(op.get_bind(), checkfirst=True)
