"""create users, courses, enrollments, coupons, payment requests and notifications

Revision ID: a1c4e2f7b9d0
Revises:
Create Date: 2026-10-18 10:12:40.511384

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a1c4e2f7b9d0"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    ]


def _coupon_columns():
    return [
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("coupon_code", sa.String(100), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("discount_type", sa.String(20), nullable=True),
        sa.Column("discount_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expire_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(100), nullable=False),
        sa.Column("full_name", sa.String(100), nullable=True),
        sa.Column("phone_number", sa.String(20), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "courses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("discount_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("currency", sa.String(10), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_courses_id", "courses", ["id"])
    op.create_index("ix_courses_teacher_id", "courses", ["teacher_id"])
    op.create_index("ix_courses_title", "courses", ["title"])

    op.create_table(
        "course_enrollments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("enrollment_type", sa.String(50), nullable=False),
        sa.Column("price_paid", sa.Numeric(10, 2), nullable=True),
        sa.Column("currency", sa.String(10), nullable=True),
        sa.Column("invite_code", sa.String(100), nullable=True),
        sa.Column(
            "enrolled_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.UniqueConstraint("user_id", "course_id", name="uq_course_enrollments_user_course"),
    )
    op.create_index("ix_course_enrollments_id", "course_enrollments", ["id"])
    op.create_index("ix_course_enrollments_user_id", "course_enrollments", ["user_id"])
    op.create_index("ix_course_enrollments_course_id", "course_enrollments", ["course_id"])

    # Coupons: codes are unique per family, stored trimmed and upper-cased
    op.create_table("admin_coupons", *_coupon_columns(), *_timestamps())
    op.create_index("ix_admin_coupons_id", "admin_coupons", ["id"])
    op.create_index("ix_admin_coupons_coupon_code", "admin_coupons", ["coupon_code"], unique=True)

    op.create_table(
        "teacher_coupons",
        *_coupon_columns(),
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_teacher_coupons_id", "teacher_coupons", ["id"])
    op.create_index(
        "ix_teacher_coupons_coupon_code", "teacher_coupons", ["coupon_code"], unique=True
    )
    op.create_index("ix_teacher_coupons_teacher_id", "teacher_coupons", ["teacher_id"])

    op.create_table(
        "coupon_usages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("coupon_type", sa.String(20), nullable=False),
        sa.Column("coupon_id", sa.Integer(), nullable=False),
        sa.Column(
            "used_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.UniqueConstraint(
            "student_id", "coupon_type", "coupon_id", name="uq_coupon_usages_student_coupon"
        ),
    )
    op.create_index("ix_coupon_usages_id", "coupon_usages", ["id"])
    op.create_index("ix_coupon_usages_student_id", "coupon_usages", ["student_id"])

    op.create_table(
        "course_payment_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("payment_method", sa.String(50), nullable=False),
        sa.Column("sender_phone", sa.String(30), nullable=False),
        sa.Column("transaction_id", sa.String(100), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(10), nullable=False),
        sa.Column("coupon_code", sa.String(100), nullable=True),
        sa.Column("invite_code", sa.String(100), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_course_payment_requests_id", "course_payment_requests", ["id"])
    op.create_index(
        "ix_course_payment_requests_course_id", "course_payment_requests", ["course_id"]
    )
    op.create_index("ix_course_payment_requests_user_id", "course_payment_requests", ["user_id"])
    op.create_index("ix_course_payment_requests_status", "course_payment_requests", ["status"])

    op.create_table(
        "user_notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id"), nullable=True),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    )
    op.create_index("ix_user_notifications_id", "user_notifications", ["id"])
    op.create_index("ix_user_notifications_user_id", "user_notifications", ["user_id"])


def downgrade() -> None:
    op.drop_table("user_notifications")
    op.drop_table("course_payment_requests")
    op.drop_table("coupon_usages")
    op.drop_table("teacher_coupons")
    op.drop_table("admin_coupons")
    op.drop_table("course_enrollments")
    op.drop_table("courses")
    op.drop_table("users")
