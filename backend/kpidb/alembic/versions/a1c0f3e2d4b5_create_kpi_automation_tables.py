"""create kpi automation tables

Revision ID: a1c0f3e2d4b5
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "a1c0f3e2d4b5"
down_revision = None
branch_labels = None
depends_on = None


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("employee_id", sa.String(length=32), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column(
            "role",
            _enum("user_role_enum", "FIELD_EXECUTIVE", "COORDINATOR", "MANAGER", "HOD", "COMPLIANCE", "ADMIN"),
            nullable=False,
        ),
        sa.Column(
            "status",
            _enum("user_status_enum", "ACTIVE", "WARNING", "AUDITED", "INACTIVE"),
            nullable=False,
        ),
        sa.Column("latest_kpi_score", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("employee_id"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_status", "users", ["status"])
    op.create_index("ix_users_is_active", "users", ["is_active"])
    op.create_index("idx_users_role_active", "users", ["role", "is_active"])

    op.create_table(
        "lifecycle_events",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=True),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=True),
        sa.Column("entity_id", sa.String(length=64), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_lifecycle_events_id", "lifecycle_events", ["id"])
    op.create_index("ix_lifecycle_events_user_id", "lifecycle_events", ["user_id"])
    op.create_index("ix_lifecycle_events_event_type", "lifecycle_events", ["event_type"])
    op.create_index("ix_lifecycle_events_category", "lifecycle_events", ["category"])
    op.create_index("ix_lifecycle_events_occurred_at", "lifecycle_events", ["occurred_at"])
    op.create_index(
        "ix_lifecycle_events_user_time",
        "lifecycle_events",
        ["user_id", sa.text("occurred_at DESC")],
    )
    op.create_index("ix_lifecycle_events_entity", "lifecycle_events", ["entity_type", "entity_id"])
    op.create_index("ix_lifecycle_events_user_category", "lifecycle_events", ["user_id", "category"])

    metric_columns = []
    for metric in (
        "tat",
        "major_negativity",
        "quality",
        "neighbor_check",
        "negativity",
        "app_usage",
        "insufficiency",
    ):
        metric_columns.append(sa.Column(f"{metric}_percentage", sa.Float(), nullable=False))
        metric_columns.append(sa.Column(f"{metric}_score", sa.Integer(), nullable=False))

    op.create_table(
        "kpi_records",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("period", sa.String(length=7), nullable=False),
        *metric_columns,
        sa.Column("overall_score", sa.Integer(), nullable=False),
        sa.Column(
            "rating",
            _enum(
                "kpi_rating_enum",
                "Outstanding",
                "Excellent",
                "Satisfactory",
                "Need Improvement",
                "Unsatisfactory",
            ),
            nullable=False,
        ),
        sa.Column("triggered_actions", sa.JSON(), nullable=False),
        sa.Column(
            "automation_status",
            _enum("kpi_automation_status_enum", "PENDING", "PROCESSING", "COMPLETED", "FAILED"),
            nullable=False,
        ),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("automation_error", sa.Text(), nullable=True),
        sa.Column("automation_attempts", sa.Integer(), nullable=False),
        sa.Column("submitted_by", sa.String(length=36), nullable=True),
        sa.Column("comments", sa.String(length=500), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["submitted_by"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "period", name="uq_kpi_records_user_period"),
    )
    op.create_index("ix_kpi_records_id", "kpi_records", ["id"])
    op.create_index("ix_kpi_records_user_id", "kpi_records", ["user_id"])
    op.create_index("ix_kpi_records_period", "kpi_records", ["period"])
    op.create_index("ix_kpi_records_overall_score", "kpi_records", ["overall_score"])
    op.create_index("ix_kpi_records_is_active", "kpi_records", ["is_active"])
    op.create_index("ix_kpi_records_created_at", "kpi_records", ["created_at"])
    op.create_index("ix_kpi_records_automation_status", "kpi_records", ["automation_status"])
    op.create_index(
        "ix_kpi_records_status_created",
        "kpi_records",
        ["automation_status", "created_at"],
    )
    op.create_index("ix_kpi_records_period_score", "kpi_records", ["period", "overall_score"])

    op.create_table(
        "training_assignments",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column(
            "training_type",
            _enum("training_type_enum", "BASIC", "NEGATIVITY_HANDLING", "DOS_DONTS", "APP_USAGE"),
            nullable=False,
        ),
        sa.Column(
            "assigned_by",
            _enum("training_assigned_by_enum", "KPI_TRIGGER", "MANUAL", "SCHEDULED", "SYSTEM"),
            nullable=False,
        ),
        sa.Column("assigned_by_user_id", sa.String(length=36), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "status",
            _enum("training_status_enum", "ASSIGNED", "IN_PROGRESS", "COMPLETED", "OVERDUE"),
            nullable=False,
        ),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completion_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("score", sa.Integer(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("kpi_record_id", sa.String(length=36), nullable=True),
        sa.Column("idempotency_key", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["assigned_by_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["kpi_record_id"], ["kpi_records.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("idempotency_key"),
    )
    op.create_index("ix_training_assignments_id", "training_assignments", ["id"])
    op.create_index("ix_training_assignments_user_id", "training_assignments", ["user_id"])
    op.create_index("ix_training_assignments_training_type", "training_assignments", ["training_type"])
    op.create_index("ix_training_assignments_status", "training_assignments", ["status"])
    op.create_index("ix_training_assignments_is_active", "training_assignments", ["is_active"])
    op.create_index("idx_training_assignments_user_status", "training_assignments", ["user_id", "status"])
    op.create_index("idx_training_assignments_status_due", "training_assignments", ["status", "due_date"])
    op.create_index("idx_training_assignments_kpi", "training_assignments", ["kpi_record_id"])

    op.create_table(
        "audit_schedules",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column(
            "audit_type",
            _enum(
                "audit_type_enum",
                "AUDIT_CALL",
                "CROSS_CHECK",
                "DUMMY_AUDIT",
                "CROSS_VERIFY_INSUFF",
                "RCA_COMPLAINTS",
            ),
            nullable=False,
        ),
        sa.Column("scheduled_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "status",
            _enum("audit_status_enum", "SCHEDULED", "IN_PROGRESS", "COMPLETED"),
            nullable=False,
        ),
        sa.Column(
            "scheduled_by",
            _enum("audit_scheduled_by_enum", "MANUAL", "SYSTEM", "KPI_TRIGGER"),
            nullable=False,
        ),
        sa.Column(
            "priority",
            _enum("audit_priority_enum", "LOW", "MEDIUM", "HIGH", "CRITICAL"),
            nullable=False,
        ),
        sa.Column("audit_scope", sa.Text(), nullable=True),
        sa.Column("audit_method", sa.String(length=255), nullable=True),
        sa.Column("assigned_to_user_id", sa.String(length=36), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("findings", sa.Text(), nullable=True),
        sa.Column("recommendations", sa.Text(), nullable=True),
        sa.Column(
            "risk_level",
            _enum("audit_risk_level_enum", "LOW", "MEDIUM", "HIGH", "CRITICAL"),
            nullable=True,
        ),
        sa.Column(
            "compliance_status",
            _enum(
                "audit_compliance_status_enum",
                "COMPLIANT",
                "NON_COMPLIANT",
                "PARTIALLY_COMPLIANT",
                "PENDING_REVIEW",
            ),
            nullable=True,
        ),
        sa.Column("follow_up_required", sa.Boolean(), nullable=False),
        sa.Column("follow_up_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("follow_up_notes", sa.Text(), nullable=True),
        sa.Column("kpi_record_id", sa.String(length=36), nullable=True),
        sa.Column("idempotency_key", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["assigned_to_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["kpi_record_id"], ["kpi_records.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("idempotency_key"),
    )
    op.create_index("ix_audit_schedules_id", "audit_schedules", ["id"])
    op.create_index("ix_audit_schedules_user_id", "audit_schedules", ["user_id"])
    op.create_index("ix_audit_schedules_audit_type", "audit_schedules", ["audit_type"])
    op.create_index("ix_audit_schedules_status", "audit_schedules", ["status"])
    op.create_index("ix_audit_schedules_priority", "audit_schedules", ["priority"])
    op.create_index("ix_audit_schedules_is_active", "audit_schedules", ["is_active"])
    op.create_index("ix_audit_schedules_user_status", "audit_schedules", ["user_id", "status"])
    op.create_index("ix_audit_schedules_status_date", "audit_schedules", ["status", "scheduled_date"])
    op.create_index("ix_audit_schedules_kpi", "audit_schedules", ["kpi_record_id"])

    op.create_table(
        "notification_logs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("recipient", sa.String(length=255), nullable=False),
        sa.Column("recipient_role", sa.String(length=32), nullable=True),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column(
            "template_type",
            _enum(
                "notification_template_enum",
                "KPI_NOTIFICATION",
                "TRAINING_ASSIGNMENT",
                "AUDIT_NOTIFICATION",
                "WARNING_LETTER",
                "TRAINING_COMPLETION",
                "AUDIT_COMPLETION",
            ),
            nullable=False,
        ),
        sa.Column("context_json", sa.JSON(), nullable=True),
        sa.Column(
            "status",
            _enum("notification_status_enum", "PENDING", "SENT", "FAILED"),
            nullable=False,
        ),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False),
        sa.Column("max_retries", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=True),
        sa.Column("kpi_record_id", sa.String(length=36), nullable=True),
        sa.Column("training_assignment_id", sa.String(length=36), nullable=True),
        sa.Column("audit_schedule_id", sa.String(length=36), nullable=True),
        sa.Column("idempotency_key", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["kpi_record_id"], ["kpi_records.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["training_assignment_id"], ["training_assignments.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["audit_schedule_id"], ["audit_schedules.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("idempotency_key"),
    )
    op.create_index("ix_notification_logs_id", "notification_logs", ["id"])
    op.create_index("ix_notification_logs_created_at", "notification_logs", ["created_at"])
    op.create_index("ix_notification_logs_template_type", "notification_logs", ["template_type"])
    op.create_index("ix_notification_logs_status", "notification_logs", ["status"])
    op.create_index("ix_notification_logs_user_id", "notification_logs", ["user_id"])
    op.create_index("ix_notification_logs_status_retry", "notification_logs", ["status", "retry_count"])
    op.create_index(
        "ix_notification_logs_template_created",
        "notification_logs",
        ["template_type", "created_at"],
    )
    op.create_index("ix_notification_logs_recipient", "notification_logs", ["recipient"])
    op.create_index("ix_notification_logs_kpi", "notification_logs", ["kpi_record_id"])


def downgrade() -> None:
    op.drop_table("notification_logs")
    op.drop_table("audit_schedules")
    op.drop_table("training_assignments")
    op.drop_table("kpi_records")
    op.drop_table("lifecycle_events")
    op.drop_table("users")
