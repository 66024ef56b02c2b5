"""create user_courses (enrollments) table

Revision ID: 004
Revises: 003
Create Date: 2026-09-28

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "user_courses",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("course_id", sa.String(36), sa.ForeignKey("courses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "course_id", name="uq_user_courses_user_course"),
    )
    op.create_index("ix_user_courses_user_id", "user_courses", ["user_id"])
    op.create_index("ix_user_courses_course_id", "user_courses", ["course_id"])


def downgrade() -> None:
    op.drop_index("ix_user_courses_course_id", table_name="user_courses")
    op.drop_index("ix_user_courses_user_id", table_name="user_courses")
    op.drop_table("user_courses")
