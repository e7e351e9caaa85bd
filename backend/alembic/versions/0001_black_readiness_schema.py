"""black students, assessments, grades and account exam entries

Revision ID: 0001_black_readiness
Revises:
Create Date: 2025-09-01 09:00:00.000000

"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision: str = "0001_black_readiness"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def upgrade() -> None:
    op.create_table(
        "black_students",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=True),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("student_email", sa.String(length=255), nullable=True),
        sa.Column("parent_name", sa.String(length=255), nullable=True),
        sa.Column("parent_email", sa.Text(), nullable=True),
        sa.Column("track", sa.String(length=80), nullable=True),
        sa.Column("goal", sa.Text(), nullable=True),
        sa.Column("difficulty_focus", sa.Text(), nullable=True),
        sa.Column("readiness", sa.Integer(), server_default=sa.text("100"), nullable=False),
        sa.Column("risk_level", sa.String(length=16), server_default=sa.text("'yellow'"), nullable=False),
        sa.Column("next_assessment_date", sa.Date(), nullable=True),
        sa.Column("next_assessment_subject", sa.String(length=80), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("readiness >= 0 AND readiness <= 100", name="black_students_readiness_range"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", name="black_students_user_id_key"),
    )
    op.create_index("idx_black_students_user", "black_students", ["user_id"])

    op.create_table(
        "black_assessments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("student_id", sa.Uuid(), nullable=False),
        sa.Column("subject", sa.String(length=80), nullable=True),
        sa.Column("topics", sa.Text(), nullable=True),
        sa.Column("when_at", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["black_students.id"],
            name="black_assessments_student_id_fkey",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_black_assessments_student_when", "black_assessments", ["student_id", "when_at"]
    )

    op.create_table(
        "black_grades",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("student_id", sa.Uuid(), nullable=False),
        sa.Column("assessment_id", sa.Uuid(), nullable=True),
        sa.Column("subject", sa.String(length=80), nullable=True),
        sa.Column("score", sa.Numeric(4, 1), nullable=False),
        sa.Column("max_score", sa.Numeric(4, 1), server_default=sa.text("10"), nullable=False),
        sa.Column("when_at", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["black_students.id"],
            name="black_grades_student_id_fkey",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["assessment_id"],
            ["black_assessments.id"],
            name="black_grades_assessment_id_fkey",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_black_grades_student_when", "black_grades", ["student_id", "when_at"])

    op.create_table(
        "black_student_briefs",
        sa.Column("student_id", sa.Uuid(), nullable=False),
        sa.Column("brief_md", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["black_students.id"],
            name="black_student_briefs_student_id_fkey",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("student_id"),
    )

    op.create_table(
        "black_contact_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("student_id", sa.Uuid(), nullable=False),
        sa.Column("contacted_at", sa.DateTime(), nullable=False),
        sa.Column("source", sa.String(length=80), nullable=True),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("author_label", sa.String(length=120), nullable=True),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["black_students.id"],
            name="black_contact_logs_student_id_fkey",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_black_contact_logs_student_at", "black_contact_logs", ["student_id", "contacted_at"]
    )

    op.create_table(
        "user_exams",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("uid", sa.String(length=128), nullable=False),
        sa.Column("date", sa.Date(), nullable=True),
        sa.Column("subject", sa.String(length=80), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("black_assessment_id", sa.Uuid(), nullable=True),
        sa.Column("grade", sa.Numeric(4, 1), nullable=True),
        sa.Column("grade_subject", sa.String(length=80), nullable=True),
        sa.Column("grade_id", sa.Uuid(), nullable=True),
        sa.Column("grade_synced_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_user_exams_uid_date", "user_exams", ["uid", "date"])

    op.create_table(
        "user_grades",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("uid", sa.String(length=128), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("subject", sa.String(length=80), nullable=False),
        sa.Column("grade", sa.Numeric(4, 1), nullable=False),
        sa.Column("exam_id", sa.Uuid(), nullable=True),
        sa.Column("assessment_id", sa.Uuid(), nullable=True),
        sa.Column("source", sa.String(length=40), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_user_grades_uid_date", "user_grades", ["uid", "date"])


def downgrade() -> None:
    op.drop_index("idx_user_grades_uid_date", table_name="user_grades")
    op.drop_table("user_grades")
    op.drop_index("idx_user_exams_uid_date", table_name="user_exams")
    op.drop_table("user_exams")
    op.drop_index("idx_black_contact_logs_student_at", table_name="black_contact_logs")
    op.drop_table("black_contact_logs")
    op.drop_table("black_student_briefs")
    op.drop_index("idx_black_grades_student_when", table_name="black_grades")
    op.drop_table("black_grades")
    op.drop_index("idx_black_assessments_student_when", table_name="black_assessments")
    op.drop_table("black_assessments")
    op.drop_index("idx_black_students_user", table_name="black_students")
    op.drop_table("black_students")
