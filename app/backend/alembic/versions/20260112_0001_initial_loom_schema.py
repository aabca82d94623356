"""Initial schema for the rule store, entity store, loom and history.

Revision ID: 20260112_0001
Revises:
Create Date: 2026-01-12 09:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "20260112_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "venue",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("address", sa.String(length=255), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_table(
        "participant",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("first_name", sa.String(length=80), nullable=False),
        sa.Column("last_name", sa.String(length=80), nullable=False),
        sa.Column("supervision_multiplier", sa.Numeric(4, 2), nullable=False, server_default=sa.text("1.0")),
        sa.Column("address", sa.String(length=255), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_table(
        "staff",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("first_name", sa.String(length=80), nullable=False),
        sa.Column("last_name", sa.String(length=80), nullable=False),
        sa.Column("contracted_hours", sa.Numeric(5, 2), nullable=False, server_default=sa.text("76")),
        sa.Column("can_drive", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_table(
        "staffavailability",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("staff_id", sa.Integer(), sa.ForeignKey("staff.id", ondelete="CASCADE"), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
    )
    op.create_index("ix_staffavailability_staff_id", "staffavailability", ["staff_id"])
    op.create_table(
        "vehicle",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("registration", sa.String(length=20), nullable=True),
        sa.Column("seats", sa.Integer(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "vehicleblackout",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("vehicle_id", sa.Integer(), sa.ForeignKey("vehicle.id", ondelete="CASCADE"), nullable=False),
        sa.Column("start_at", sa.DateTime(), nullable=False),
        sa.Column("end_at", sa.DateTime(), nullable=False),
        sa.Column("reason", sa.String(length=255), nullable=True),
    )
    op.create_index("ix_vehicleblackout_vehicle_id", "vehicleblackout", ["vehicle_id"])

    op.create_table(
        "staffingratiotable",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
    )
    op.create_table(
        "staffingratiobracket",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "table_id", sa.Integer(), sa.ForeignKey("staffingratiotable.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("min_participants", sa.Float(), nullable=False),
        sa.Column("max_participants", sa.Float(), nullable=False),
        sa.Column("required_staff", sa.Integer(), nullable=False),
    )
    op.create_index("ix_staffingratiobracket_table_id", "staffingratiobracket", ["table_id"])
    op.create_table(
        "programrule",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("venue_id", sa.Integer(), sa.ForeignKey("venue.id", ondelete="SET NULL"), nullable=True),
        sa.Column("transport_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "staffing_ratio_id",
            sa.Integer(),
            sa.ForeignKey("staffingratiotable.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("time_slots", sa.JSON(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_table(
        "ruleexception",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("rule_id", sa.Integer(), sa.ForeignKey("programrule.id", ondelete="CASCADE"), nullable=False),
        sa.Column("exception_date", sa.Date(), nullable=False),
        sa.Column("exception_type", sa.String(length=16), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.Column("venue_id", sa.Integer(), sa.ForeignKey("venue.id", ondelete="SET NULL"), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_ruleexception_rule_id", "ruleexception", ["rule_id"])
    op.create_index("ix_ruleexception_exception_date", "ruleexception", ["exception_date"])
    op.create_table(
        "participantenrolment",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "participant_id", sa.Integer(), sa.ForeignKey("participant.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("rule_id", sa.Integer(), sa.ForeignKey("programrule.id", ondelete="CASCADE"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("pickup_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("dropoff_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_participantenrolment_participant_id", "participantenrolment", ["participant_id"])
    op.create_index("ix_participantenrolment_rule_id", "participantenrolment", ["rule_id"])
    op.create_table(
        "ratelineitem",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("rule_id", sa.Integer(), sa.ForeignKey("programrule.id", ondelete="CASCADE"), nullable=False),
        sa.Column("support_item_number", sa.String(length=40), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("gst_code", sa.String(length=8), nullable=False, server_default=sa.text("'P2'")),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_ratelineitem_rule_id", "ratelineitem", ["rule_id"])

    op.create_table(
        "loominstance",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "source_rule_id", sa.Integer(), sa.ForeignKey("programrule.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("instance_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("venue_id", sa.Integer(), sa.ForeignKey("venue.id", ondelete="SET NULL"), nullable=True),
        sa.Column("transport_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "staffing_ratio_id",
            sa.Integer(),
            sa.ForeignKey("staffingratiotable.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("projection_hash", sa.String(length=64), nullable=True),
        sa.Column("projected_at", sa.DateTime(), nullable=True),
        sa.Column("is_overridden", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("quality_audit_flag", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("virtual_participant_count", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("required_staff", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("staff_shortfall", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("vehicle_status", sa.String(length=16), nullable=False, server_default=sa.text("'not_required'")),
        sa.Column("needs_attention", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("source_rule_id", "instance_date", name="uq_loominstance_rule_date"),
    )
    op.create_index("ix_loominstance_source_rule_id", "loominstance", ["source_rule_id"])
    op.create_index("ix_loominstance_instance_date", "loominstance", ["instance_date"])
    op.create_table(
        "participantattendance",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "instance_id", sa.Integer(), sa.ForeignKey("loominstance.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "participant_id", sa.Integer(), sa.ForeignKey("participant.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "enrolment_id",
            sa.Integer(),
            sa.ForeignKey("participantenrolment.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("status", sa.String(length=16), nullable=False, server_default=sa.text("'confirmed'")),
        sa.Column("pickup_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("dropoff_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_overridden", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cancellation_type", sa.String(length=16), nullable=True),
        sa.Column("billing_impact", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("hours_notice", sa.Float(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.UniqueConstraint("instance_id", "participant_id", name="uq_attendance_participant"),
    )
    op.create_index("ix_participantattendance_instance_id", "participantattendance", ["instance_id"])
    op.create_index("ix_participantattendance_participant_id", "participantattendance", ["participant_id"])
    op.create_table(
        "staffassignment",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "instance_id", sa.Integer(), sa.ForeignKey("loominstance.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("staff_id", sa.Integer(), sa.ForeignKey("staff.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False, server_default=sa.text("'support'")),
        sa.Column("status", sa.String(length=16), nullable=False, server_default=sa.text("'planned'")),
        sa.Column("requires_vehicle", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_overridden", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("needs_attention", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("replaces_assignment_id", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_staffassignment_instance_id", "staffassignment", ["instance_id"])
    op.create_index("ix_staffassignment_staff_id", "staffassignment", ["staff_id"])
    op.create_table(
        "vehicleassignment",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "instance_id", sa.Integer(), sa.ForeignKey("loominstance.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("vehicle_id", sa.Integer(), sa.ForeignKey("vehicle.id", ondelete="CASCADE"), nullable=False),
        sa.Column("driver_staff_id", sa.Integer(), sa.ForeignKey("staff.id", ondelete="SET NULL"), nullable=True),
        sa.Column("stop_sequence", sa.JSON(), nullable=True),
        sa.Column("route_status", sa.String(length=16), nullable=False, server_default=sa.text("'not_computed'")),
        sa.Column("route_quality_score", sa.Float(), nullable=True),
        sa.Column("is_overridden", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_vehicleassignment_instance_id", "vehicleassignment", ["instance_id"])
    op.create_index("ix_vehicleassignment_vehicle_id", "vehicleassignment", ["vehicle_id"])
    op.create_table(
        "loomsetting",
        sa.Column("key", sa.String(length=64), primary_key=True),
        sa.Column("value", sa.String(length=255), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "loomauditlog",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("instance_id", sa.Integer(), nullable=True),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("before_state", sa.JSON(), nullable=True),
        sa.Column("after_state", sa.JSON(), nullable=True),
        sa.Column("actor", sa.String(length=64), nullable=False, server_default=sa.text("'system'")),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_loomauditlog_instance_id", "loomauditlog", ["instance_id"])

    op.create_table(
        "historyshift",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("original_instance_id", sa.Integer(), nullable=False),
        sa.Column("source_rule_id", sa.Integer(), nullable=True),
        sa.Column("program_name", sa.String(length=160), nullable=False),
        sa.Column("instance_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("venue_name", sa.String(length=120), nullable=True),
        sa.Column("venue_address", sa.String(length=255), nullable=True),
        sa.Column("participant_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("staff_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("vehicle_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("was_overridden", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("archived_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_historyshift_original_instance_id", "historyshift", ["original_instance_id"])
    op.create_index("ix_historyshift_instance_date", "historyshift", ["instance_date"])
    op.create_table(
        "historyparticipant",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "history_shift_id", sa.Integer(), sa.ForeignKey("historyshift.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("participant_id", sa.Integer(), nullable=False),
        sa.Column("participant_name", sa.String(length=160), nullable=False),
        sa.Column("attendance_status", sa.String(length=16), nullable=False),
        sa.Column("cancellation_type", sa.String(length=16), nullable=True),
        sa.Column("billing_impact", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("pickup_provided", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("dropoff_provided", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_historyparticipant_history_shift_id", "historyparticipant", ["history_shift_id"])
    op.create_table(
        "historystaff",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "history_shift_id", sa.Integer(), sa.ForeignKey("historyshift.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("staff_id", sa.Integer(), nullable=False),
        sa.Column("staff_name", sa.String(length=160), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("hours_worked", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_historystaff_history_shift_id", "historystaff", ["history_shift_id"])
    op.create_table(
        "historytag",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "history_shift_id", sa.Integer(), sa.ForeignKey("historyshift.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("tag_key", sa.String(length=40), nullable=False),
        sa.Column("tag_value", sa.String(length=160), nullable=False),
    )
    op.create_index("ix_historytag_history_shift_id", "historytag", ["history_shift_id"])
    op.create_table(
        "paymentdiamond",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "history_shift_id", sa.Integer(), sa.ForeignKey("historyshift.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("participant_id", sa.Integer(), nullable=False),
        sa.Column("support_item_number", sa.String(length=40), nullable=False),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("quantity", sa.Numeric(6, 2), nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("gst_code", sa.String(length=8), nullable=False, server_default=sa.text("'P2'")),
        sa.Column("status", sa.String(length=16), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("billed_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_paymentdiamond_history_shift_id", "paymentdiamond", ["history_shift_id"])
    op.create_index("ix_paymentdiamond_participant_id", "paymentdiamond", ["participant_id"])
    op.create_index("ix_paymentdiamond_status", "paymentdiamond", ["status"])


def downgrade() -> None:
    for table in (
        "paymentdiamond",
        "historytag",
        "historystaff",
        "historyparticipant",
        "historyshift",
        "loomauditlog",
        "loomsetting",
        "vehicleassignment",
        "staffassignment",
        "participantattendance",
        "loominstance",
        "ratelineitem",
        "participantenrolment",
        "ruleexception",
        "programrule",
        "staffingratiobracket",
        "staffingratiotable",
        "vehicleblackout",
        "vehicle",
        "staffavailability",
        "staff",
        "participant",
        "venue",
    ):
        op.drop_table(table)
