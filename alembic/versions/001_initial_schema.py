"""Initial campus schema.

Tenancy and users, classes, courses, attendance, assignments, chat with
multi-device sync, media uploads, video calls, reminders and notifications.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _id() -> sa.Column:
    return sa.Column("id", sa.String(32), primary_key=True)


def _ts(name: str, *, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _json(name: str = "meta_data") -> sa.Column:
    return sa.Column(name, postgresql.JSONB(), server_default=sa.text("'{}'::jsonb"), nullable=False)


def _fk(name: str, target: str, *, nullable: bool = False, ondelete: str | None = "CASCADE") -> sa.Column:
    return sa.Column(name, sa.String(32), sa.ForeignKey(target, ondelete=ondelete), nullable=nullable)


def _flag(name: str, default: bool) -> sa.Column:
    return sa.Column(name, sa.Boolean(), server_default=sa.text("true" if default else "false"), nullable=False)


def upgrade() -> None:
    """Create all tables."""
    # --- Tenancy & users ---
    op.create_table(
        "campuses",
        _id(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("contact_email", sa.String(320), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        _flag("is_active", True),
        _json(),
        _ts("created_at"),
        _ts("updated_at"),
        sa.UniqueConstraint("code", name="uq_campuses_code"),
    )

    op.create_table(
        "users",
        _id(),
        _fk("campus_id", "campuses.id", nullable=True),
        sa.Column("user_type", sa.String(16), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("password_hash", sa.String(256), nullable=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), server_default="", nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("class_id", sa.String(32), nullable=True),
        _flag("is_active", True),
        _flag("is_deleted", False),
        _ts("last_login"),
        sa.Column("login_count", sa.Integer(), server_default="0", nullable=False),
        _json(),
        _ts("created_at"),
        _ts("updated_at"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_campus_id", "users", ["campus_id"])
    op.execute(
        "ALTER TABLE users ADD CONSTRAINT ck_users_user_type "
        "CHECK (user_type IN ('Super Admin', 'Admin', 'Teacher', 'Student', 'Parent'))"
    )

    # --- Classes ---
    op.create_table(
        "classes",
        _id(),
        _fk("campus_id", "campuses.id"),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("academic_year", sa.String(16), nullable=True),
        _fk("class_teacher_id", "users.id", nullable=True, ondelete="SET NULL"),
        _flag("is_active", True),
        _flag("is_deleted", False),
        _json(),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_classes_campus_id", "classes", ["campus_id"])

    op.create_table(
        "class_members",
        sa.Column("class_id", sa.String(32), sa.ForeignKey("classes.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", sa.String(32), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("role", sa.String(16), server_default="student", nullable=False),
        _ts("joined_at"),
    )

    # --- Courses ---
    op.create_table(
        "courses",
        _id(),
        _fk("campus_id", "campuses.id"),
        sa.Column("course_name", sa.String(200), nullable=False),
        sa.Column("course_code", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        _fk("class_id", "classes.id", nullable=True, ondelete="SET NULL"),
        _fk("created_by", "users.id", ondelete=None),
        sa.Column("status", sa.String(16), server_default="draft", nullable=False),
        sa.Column("difficulty_level", sa.String(16), server_default="beginner", nullable=False),
        sa.Column("total_chapters", sa.Integer(), server_default="0", nullable=False),
        sa.Column("max_enrollments", sa.Integer(), nullable=True),
        sa.Column("enrollment_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("completion_count", sa.Integer(), server_default="0", nullable=False),
        _json(),
        _ts("created_at"),
        _ts("updated_at"),
        sa.UniqueConstraint("campus_id", "course_code", name="uq_courses_campus_id_course_code"),
    )
    op.create_index("ix_courses_campus_id", "courses", ["campus_id"])

    op.create_table(
        "course_enrollments",
        _id(),
        _fk("campus_id", "campuses.id"),
        _fk("course_id", "courses.id"),
        _fk("user_id", "users.id"),
        sa.Column("enrollment_type", sa.String(16), server_default="self", nullable=False),
        sa.Column("enrollment_status", sa.String(16), server_default="active", nullable=False),
        sa.Column("progress_percentage", sa.Float(), server_default="0", nullable=False),
        sa.Column("enrolled_by", sa.String(32), nullable=True),
        _ts("enrollment_date"),
        _ts("completion_date"),
        _ts("last_accessed_at"),
        _ts("updated_at"),
        sa.UniqueConstraint("course_id", "user_id", name="uq_course_enrollments_course_id_user_id"),
    )
    op.create_index("ix_course_enrollments_course_id", "course_enrollments", ["course_id"])
    op.create_index("ix_course_enrollments_user_id", "course_enrollments", ["user_id"])

    op.create_table(
        "course_progress",
        _id(),
        _fk("campus_id", "campuses.id"),
        _fk("course_id", "courses.id"),
        _fk("user_id", "users.id"),
        sa.Column("total_watch_time", sa.Integer(), server_default="0", nullable=False),
        sa.Column("chapters_completed", sa.Integer(), server_default="0", nullable=False),
        sa.Column("completion_percentage", sa.Float(), server_default="0", nullable=False),
        _flag("is_completed", False),
        sa.Column("last_content_id", sa.String(64), nullable=True),
        _ts("updated_at"),
        sa.UniqueConstraint("course_id", "user_id", name="uq_course_progress_course_id_user_id"),
    )

    op.create_table(
        "course_watch_history",
        _id(),
        _fk("campus_id", "campuses.id"),
        _fk("course_id", "courses.id"),
        _fk("user_id", "users.id"),
        sa.Column("content_id", sa.String(64), nullable=False),
        sa.Column("watch_duration", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_position", sa.Integer(), server_default="0", nullable=False),
        _flag("is_completed", False),
        _ts("watched_at"),
    )
    op.create_index("ix_course_watch_history_course_user", "course_watch_history", ["course_id", "user_id"])

    # --- Attendance & assignments ---
    op.create_table(
        "attendance",
        _id(),
        _fk("campus_id", "campuses.id"),
        _fk("user_id", "users.id"),
        _fk("class_id", "classes.id", nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("user_type", sa.String(16), server_default="Student", nullable=False),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("marked_by", sa.String(32), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.UniqueConstraint(
            "campus_id", "user_id", "class_id", "date", name="uq_attendance_campus_id_user_id_class_id_date"
        ),
    )
    op.create_index("ix_attendance_class_date", "attendance", ["class_id", "date"])
    op.execute(
        "ALTER TABLE attendance ADD CONSTRAINT ck_attendance_status "
        "CHECK (status IN ('present', 'absent', 'late', 'leave'))"
    )

    op.create_table(
        "assignments",
        _id(),
        _fk("campus_id", "campuses.id"),
        _fk("class_id", "classes.id"),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("subject", sa.String(100), nullable=True),
        _ts("due_date", nullable=False),
        sa.Column("max_score", sa.Float(), server_default="100", nullable=False),
        _fk("created_by", "users.id", ondelete=None),
        _flag("is_deleted", False),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_assignments_campus_id", "assignments", ["campus_id"])

    op.create_table(
        "assignment_submissions",
        _id(),
        _fk("campus_id", "campuses.id"),
        _fk("assignment_id", "assignments.id"),
        _fk("student_id", "users.id"),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("attachments", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column("status", sa.String(16), server_default="submitted", nullable=False),
        _flag("is_late", False),
        sa.Column("grade", sa.Float(), nullable=True),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("graded_by", sa.String(32), nullable=True),
        _ts("graded_at"),
        _ts("submitted_at"),
        sa.UniqueConstraint(
            "assignment_id", "student_id", name="uq_assignment_submissions_assignment_id_student_id"
        ),
    )
    op.create_index("ix_assignment_submissions_assignment_id", "assignment_submissions", ["assignment_id"])

    # --- Chat ---
    op.create_table(
        "chat_rooms",
        _id(),
        _fk("campus_id", "campuses.id"),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("room_type", sa.String(32), server_default="custom_group", nullable=False),
        sa.Column("class_id", sa.String(32), nullable=True),
        _fk("created_by", "users.id", ondelete=None),
        _flag("is_active", True),
        _flag("is_deleted", False),
        sa.Column("last_sequence", sa.BigInteger(), server_default="0", nullable=False),
        _json(),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_chat_rooms_campus_id", "chat_rooms", ["campus_id"])

    op.create_table(
        "chat_room_members",
        sa.Column("room_id", sa.String(32), sa.ForeignKey("chat_rooms.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", sa.String(32), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        _flag("is_admin", False),
        _ts("joined_at"),
    )
    op.create_index("ix_chat_room_members_user", "chat_room_members", ["user_id"])

    op.create_table(
        "chat_messages",
        _id(),
        _fk("campus_id", "campuses.id"),
        _fk("room_id", "chat_rooms.id"),
        _fk("sender_id", "users.id", ondelete=None),
        sa.Column("message_type", sa.String(16), server_default="text", nullable=False),
        sa.Column("content", sa.Text(), server_default="", nullable=False),
        sa.Column("file_url", sa.Text(), nullable=True),
        sa.Column("file_name", sa.String(256), nullable=True),
        sa.Column("file_size", sa.BigInteger(), nullable=True),
        sa.Column("sequence_number", sa.BigInteger(), nullable=False),
        sa.Column("client_message_id", sa.String(64), nullable=True),
        sa.Column("reply_to", sa.String(32), nullable=True),
        sa.Column("forwarded_from", sa.String(32), nullable=True),
        sa.Column("forwarded_count", sa.Integer(), server_default="0", nullable=False),
        _flag("is_edited", False),
        _ts("edited_at"),
        _flag("is_deleted", False),
        _ts("deleted_at"),
        _json(),
        _ts("created_at"),
        _ts("updated_at"),
        sa.UniqueConstraint("room_id", "sequence_number", name="uq_chat_messages_room_id_sequence_number"),
        sa.UniqueConstraint(
            "room_id", "sender_id", "client_message_id", name="uq_chat_messages_room_id_sender_id_client_message_id"
        ),
    )
    op.create_index("ix_chat_messages_room_created", "chat_messages", ["room_id", "created_at"])
    op.create_index("ix_chat_messages_forwarded_from", "chat_messages", ["forwarded_from"])

    op.create_table(
        "message_receipts",
        sa.Column(
            "message_id", sa.String(32), sa.ForeignKey("chat_messages.id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column("user_id", sa.String(32), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("kind", sa.String(16), primary_key=True),
        _ts("at"),
    )
    op.create_index("ix_message_receipts_user_kind", "message_receipts", ["user_id", "kind"])

    op.create_table(
        "message_stars",
        sa.Column(
            "message_id", sa.String(32), sa.ForeignKey("chat_messages.id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column("user_id", sa.String(32), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        _ts("created_at"),
    )

    op.create_table(
        "user_devices",
        _id(),
        _fk("user_id", "users.id"),
        _fk("campus_id", "campuses.id"),
        sa.Column("device_id", sa.String(128), nullable=False),
        sa.Column("device_name", sa.String(128), nullable=False),
        sa.Column("device_type", sa.String(16), nullable=False),
        sa.Column("platform", sa.String(32), nullable=False),
        sa.Column("app_version", sa.String(32), nullable=False),
        sa.Column("push_token", sa.Text(), nullable=True),
        _flag("is_active", True),
        _ts("last_active_at"),
        _ts("last_sync_at"),
        sa.Column("last_message_seq", sa.BigInteger(), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.UniqueConstraint("user_id", "device_id", name="uq_user_devices_user_id_device_id"),
    )
    op.create_index("ix_user_devices_user_id", "user_devices", ["user_id"])

    op.create_table(
        "media_uploads",
        _id(),
        _fk("campus_id", "campuses.id"),
        _fk("user_id", "users.id"),
        sa.Column("file_key", sa.String(512), nullable=False),
        sa.Column("file_name", sa.String(256), nullable=False),
        sa.Column("file_type", sa.String(128), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        sa.Column("url", sa.Text(), nullable=True),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),
        _json(),
        _ts("created_at"),
        _ts("confirmed_at"),
        sa.UniqueConstraint("file_key", name="uq_media_uploads_file_key"),
    )

    # --- Video calls ---
    op.create_table(
        "video_calls",
        _id(),
        sa.Column("call_id", sa.String(64), nullable=False),
        _fk("campus_id", "campuses.id"),
        _fk("caller_id", "users.id", ondelete=None),
        sa.Column("call_type", sa.String(8), server_default="video", nullable=False),
        sa.Column("call_status", sa.String(16), server_default="created", nullable=False),
        _ts("started_at"),
        _ts("ended_at"),
        sa.Column("duration", sa.Integer(), nullable=True),
        _json("call_settings"),
        _json(),
        _ts("created_at"),
        _ts("updated_at"),
        sa.UniqueConstraint("call_id", name="uq_video_calls_call_id"),
    )

    op.create_table(
        "video_call_participants",
        sa.Column(
            "call_id", sa.String(64), sa.ForeignKey("video_calls.call_id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column("user_id", sa.String(32), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("name", sa.String(200), server_default="", nullable=False),
        sa.Column("role", sa.String(16), server_default="participant", nullable=False),
        _ts("joined_at"),
    )
    op.create_index("ix_video_call_participants_user", "video_call_participants", ["user_id"])

    # --- Reminders & notifications ---
    op.create_table(
        "reminders",
        _id(),
        _fk("campus_id", "campuses.id"),
        _fk("user_id", "users.id"),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("reminder_date", sa.Date(), nullable=False),
        sa.Column("reminder_time", sa.String(5), nullable=False),
        _ts("reminder_datetime", nullable=False),
        sa.Column("frequency", sa.String(16), server_default="one_time", nullable=False),
        _flag("is_active", True),
        _flag("is_sent", False),
        _ts("sent_at"),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_reminders_user_id", "reminders", ["user_id"])
    op.create_index("ix_reminders_due", "reminders", ["is_active", "is_sent", "reminder_datetime"])
    op.execute(
        "ALTER TABLE reminders ADD CONSTRAINT ck_reminders_frequency "
        "CHECK (frequency IN ('one_time', 'daily', 'weekly'))"
    )

    op.create_table(
        "notifications",
        _id(),
        sa.Column("campus_id", sa.String(32), nullable=True),
        _fk("user_id", "users.id"),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("subtype", sa.String(64), nullable=False),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("action_url", sa.String(256), nullable=True),
        _flag("read", False),
        _json("metadata"),
        _ts("created_at"),
    )
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "read"])


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    for table in (
        "notifications",
        "reminders",
        "video_call_participants",
        "video_calls",
        "media_uploads",
        "user_devices",
        "message_stars",
        "message_receipts",
        "chat_messages",
        "chat_room_members",
        "chat_rooms",
        "assignment_submissions",
        "assignments",
        "attendance",
        "course_watch_history",
        "course_progress",
        "course_enrollments",
        "courses",
        "class_members",
        "classes",
        "users",
        "campuses",
    ):
        op.drop_table(table)
