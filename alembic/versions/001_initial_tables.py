"""Initial council tables and seed SuperAdmin

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from codema.core.auth.password import hash_password

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # Users and councillors
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("role", sa.String(50), nullable=False),
        sa.Column("represented_entity", sa.String(200), nullable=True),
        sa.Column("mandate_start", sa.Date(), nullable=True),
        sa.Column("mandate_end", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "role IN ('SuperAdmin', 'Admin', 'Secretary', 'Councillor', 'Inspector', 'Citizen')",
            name="ck_users_role",
        ),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"], unique=False)

    # Protocol counters, one row per type and year
    op.create_table(
        "protocol_sequences",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("protocol_type", sa.String(10), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("last_sequence", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_issued", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("protocol_type", "year", name="uq_protocol_sequence_type_year"),
    )
    op.create_index("ix_protocol_sequences_year", "protocol_sequences", ["year"], unique=False)

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("entity_type", sa.String(100), nullable=False),
        sa.Column("entity_id", sa.BigInteger(), nullable=False),
        sa.Column("entity_identifier", sa.String(200), nullable=True),
        sa.Column("old_values", sa.JSON(), nullable=True),
        sa.Column("new_values", sa.JSON(), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"], unique=False)
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"], unique=False)
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"], unique=False)
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"], unique=False)

    op.create_table(
        "attachments",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("content_type", sa.String(100), nullable=False),
        sa.Column("storage_path", sa.String(512), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("checksum", sa.String(64), nullable=False),
        sa.Column("created_by_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_attachments_created_by_id", "attachments", ["created_by_id"], unique=False)

    # Meetings, attendance and minutes
    op.create_table(
        "meetings",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("protocol_number", sa.String(40), nullable=False),
        sa.Column("convocation_protocol", sa.String(40), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("meeting_type", sa.String(20), nullable=False, server_default="Ordinary"),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("location", sa.String(255), nullable=False),
        sa.Column("agenda", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="Scheduled"),
        sa.Column("secretary_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("quorum_required", sa.Integer(), nullable=True),
        sa.Column("convocation_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("held_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.String(500), nullable=True),
        sa.Column("created_by_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("convocation_protocol"),
    )
    op.create_index("ix_meetings_protocol_number", "meetings", ["protocol_number"], unique=True)
    op.create_index("ix_meetings_scheduled_at", "meetings", ["scheduled_at"], unique=False)
    op.create_index("ix_meetings_status", "meetings", ["status"], unique=False)

    op.create_table(
        "meeting_attendances",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column(
            "meeting_id",
            sa.BigInteger(),
            sa.ForeignKey("meetings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("convocation_status", sa.String(20), nullable=False, server_default="Pending"),
        sa.Column("present", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("arrived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("meeting_id", "user_id", name="uq_meeting_attendance_user"),
    )
    op.create_index(
        "ix_meeting_attendances_meeting_id", "meeting_attendances", ["meeting_id"], unique=False
    )
    op.create_index(
        "ix_meeting_attendances_user_id", "meeting_attendances", ["user_id"], unique=False
    )

    op.create_table(
        "meeting_minutes",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column(
            "meeting_id",
            sa.BigInteger(),
            sa.ForeignKey("meetings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("protocol_number", sa.String(40), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="Draft"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_by_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("meeting_id"),
    )
    op.create_index(
        "ix_meeting_minutes_protocol_number", "meeting_minutes", ["protocol_number"], unique=True
    )
    op.create_index("ix_meeting_minutes_status", "meeting_minutes", ["status"], unique=False)

    op.create_table(
        "resolutions",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("protocol_number", sa.String(40), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column("legal_basis", sa.Text(), nullable=True),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="Draft"),
        sa.Column("meeting_id", sa.BigInteger(), sa.ForeignKey("meetings.id"), nullable=True),
        sa.Column("votes_for", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("votes_against", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("votes_abstain", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("voting_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revocation_reason", sa.String(1000), nullable=True),
        sa.Column("created_by_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_resolutions_protocol_number", "resolutions", ["protocol_number"], unique=True)
    op.create_index("ix_resolutions_status", "resolutions", ["status"], unique=False)
    op.create_index("ix_resolutions_meeting_id", "resolutions", ["meeting_id"], unique=False)

    # Ombudsman complaints
    op.create_table(
        "complaints",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("protocol_number", sa.String(40), nullable=False),
        sa.Column("protocol_degraded", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("complaint_type", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("location", sa.String(500), nullable=False),
        sa.Column("latitude", sa.Numeric(9, 6), nullable=True),
        sa.Column("longitude", sa.Numeric(9, 6), nullable=True),
        sa.Column("occurred_on", sa.Date(), nullable=True),
        sa.Column("is_anonymous", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("complainant_name", sa.String(200), nullable=True),
        sa.Column("complainant_email", sa.String(255), nullable=True),
        sa.Column("complainant_phone", sa.String(50), nullable=True),
        sa.Column("submitted_by_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("priority", sa.String(20), nullable=False, server_default="Normal"),
        sa.Column("status", sa.String(30), nullable=False, server_default="Received"),
        sa.Column("inspector_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("inspection_date", sa.Date(), nullable=True),
        sa.Column("inspection_report", sa.Text(), nullable=True),
        sa.Column("final_report", sa.Text(), nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        sa.Column("concluded_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_complaints_protocol_number", "complaints", ["protocol_number"], unique=True)
    op.create_index("ix_complaints_complaint_type", "complaints", ["complaint_type"], unique=False)
    op.create_index("ix_complaints_submitted_by_id", "complaints", ["submitted_by_id"], unique=False)
    op.create_index("ix_complaints_priority", "complaints", ["priority"], unique=False)
    op.create_index("ix_complaints_status", "complaints", ["status"], unique=False)
    op.create_index("ix_complaints_inspector_id", "complaints", ["inspector_id"], unique=False)

    op.create_table(
        "complaint_events",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column(
            "complaint_id",
            sa.BigInteger(),
            sa.ForeignKey("complaints.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("from_status", sa.String(30), nullable=True),
        sa.Column("to_status", sa.String(30), nullable=False),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_complaint_events_complaint_id", "complaint_events", ["complaint_id"], unique=False
    )

    # Document archive
    op.create_table(
        "archive_documents",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("protocol_number", sa.String(40), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("document_type", sa.String(30), nullable=False),
        sa.Column("category", sa.String(20), nullable=False, server_default="Current"),
        sa.Column("document_date", sa.Date(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("author", sa.String(200), nullable=True),
        sa.Column("issuing_body", sa.String(200), nullable=True),
        sa.Column("meeting_id", sa.BigInteger(), sa.ForeignKey("meetings.id"), nullable=True),
        sa.Column("tags_index", sa.Text(), nullable=False, server_default=""),
        sa.Column("attachment_id", sa.BigInteger(), sa.ForeignKey("attachments.id"), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("content_type", sa.String(100), nullable=False),
        sa.Column("checksum", sa.String(64), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="Active"),
        sa.Column("is_confidential", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "previous_version_id",
            sa.BigInteger(),
            sa.ForeignKey("archive_documents.id"),
            nullable=True,
        ),
        sa.Column("created_by_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("updated_by_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_archive_documents_protocol_number", "archive_documents", ["protocol_number"], unique=True
    )
    for column in ("document_type", "category", "year", "meeting_id", "status"):
        op.create_index(f"ix_archive_documents_{column}", "archive_documents", [column], unique=False)

    # Notifications
    op.create_table(
        "notifications",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column(
            "user_id",
            sa.BigInteger(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("kind", sa.String(30), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=True),
        sa.Column("entity_id", sa.BigInteger(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)
    op.create_index("ix_notifications_is_read", "notifications", ["is_read"], unique=False)

    op.create_table(
        "notification_preferences",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column(
            "user_id",
            sa.BigInteger(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("email_enabled", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("push_enabled", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("in_app_enabled", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("convocations", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("complaints", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("resolutions", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("reminder_hours_before", sa.Integer(), nullable=False, server_default="24"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
    )

    # Environmental processes
    op.create_table(
        "environmental_processes",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("protocol_number", sa.String(40), nullable=False),
        sa.Column("process_type", sa.String(30), nullable=False),
        sa.Column("applicant", sa.String(255), nullable=False),
        sa.Column("applicant_document", sa.String(20), nullable=True),
        sa.Column("site_address", sa.String(500), nullable=True),
        sa.Column("activity_description", sa.Text(), nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default="Filed"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="Normal"),
        sa.Column("rapporteur_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("technical_opinion", sa.Text(), nullable=True),
        sa.Column("rapporteur_opinion", sa.Text(), nullable=True),
        sa.Column("filed_on", sa.Date(), nullable=False),
        sa.Column("opinion_due_on", sa.Date(), nullable=False),
        sa.Column("voted_on", sa.Date(), nullable=True),
        sa.Column("vote_result", sa.String(500), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_environmental_processes_protocol_number",
        "environmental_processes",
        ["protocol_number"],
        unique=True,
    )
    for column in ("process_type", "status", "priority", "rapporteur_id", "opinion_due_on"):
        op.create_index(
            f"ix_environmental_processes_{column}", "environmental_processes", [column], unique=False
        )

    # Citizen reports
    op.create_table(
        "report_categories",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("icon", sa.String(50), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "citizen_reports",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("protocol_number", sa.String(40), nullable=False),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "category_id", sa.BigInteger(), sa.ForeignKey("report_categories.id"), nullable=True
        ),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("location", sa.String(200), nullable=False),
        sa.Column("priority", sa.String(20), nullable=False, server_default="Medium"),
        sa.Column("status", sa.String(20), nullable=False, server_default="Open"),
        sa.Column("staff_response", sa.Text(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_citizen_reports_protocol_number", "citizen_reports", ["protocol_number"], unique=True
    )
    for column in ("user_id", "category_id", "priority", "status"):
        op.create_index(f"ix_citizen_reports_{column}", "citizen_reports", [column], unique=False)

    # Environmental fund (FMA)
    op.create_table(
        "fund_revenues",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("revenue_type", sa.String(30), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("received_on", sa.Date(), nullable=False),
        sa.Column("source", sa.String(255), nullable=True),
        sa.Column("document_number", sa.String(100), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="Expected"),
        sa.Column("created_by_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    for column in ("revenue_type", "received_on", "status"):
        op.create_index(f"ix_fund_revenues_{column}", "fund_revenues", [column], unique=False)

    op.create_table(
        "fund_projects",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("protocol_number", sa.String(40), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("objectives", sa.Text(), nullable=True),
        sa.Column("proponent", sa.String(255), nullable=False),
        sa.Column("proponent_document", sa.String(20), nullable=True),
        sa.Column("area", sa.String(100), nullable=True),
        sa.Column("duration_months", sa.Integer(), nullable=True),
        sa.Column("requested_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("approved_amount", sa.Numeric(15, 2), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="Submitted"),
        sa.Column("review_notes", sa.Text(), nullable=True),
        sa.Column("decided_on", sa.Date(), nullable=True),
        sa.Column("submitted_by_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_fund_projects_protocol_number", "fund_projects", ["protocol_number"], unique=True
    )
    op.create_index("ix_fund_projects_status", "fund_projects", ["status"], unique=False)

    op.create_table(
        "fund_project_expenses",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column(
            "project_id",
            sa.BigInteger(),
            sa.ForeignKey("fund_projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("expense_type", sa.String(20), nullable=False),
        sa.Column("supplier", sa.String(255), nullable=False),
        sa.Column("supplier_document", sa.String(20), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("spent_on", sa.Date(), nullable=False),
        sa.Column("invoice_number", sa.String(100), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="Pending"),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("reviewed_by_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    for column in ("project_id", "status"):
        op.create_index(
            f"ix_fund_project_expenses_{column}", "fund_project_expenses", [column], unique=False
        )

    # Seed first SuperAdmin user
    # Password: Admin123! (change in production!)
    op.execute(
        sa.text(
            """
            INSERT INTO users (email, password_hash, full_name, role, is_active, created_at, updated_at)
            VALUES (
                'admin@codema.org.br',
                :password_hash,
                'Administrador do Sistema',
                'SuperAdmin',
                true,
                NOW(),
                NOW()
            )
            """
        ).bindparams(password_hash=hash_password("Admin123!"))
    )


def downgrade() -> None:
    op.drop_table("fund_project_expenses")
    op.drop_table("fund_projects")
    op.drop_table("fund_revenues")
    op.drop_table("citizen_reports")
    op.drop_table("report_categories")
    op.drop_table("environmental_processes")
    op.drop_table("notification_preferences")
    op.drop_table("notifications")
    op.drop_table("archive_documents")
    op.drop_table("complaint_events")
    op.drop_table("complaints")
    op.drop_table("resolutions")
    op.drop_table("meeting_minutes")
    op.drop_table("meeting_attendances")
    op.drop_table("meetings")
    op.drop_table("attachments")
    op.drop_table("audit_logs")
    op.drop_table("protocol_sequences")
    op.drop_table("users")
