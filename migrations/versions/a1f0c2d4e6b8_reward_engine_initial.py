"""reward engine: collaborator tables, reward types, records, evaluation log, kudos

Revision ID: a1f0c2d4e6b8
Revises:
Create Date: 2026-10-17 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'a1f0c2d4e6b8'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

REWARD_CATEGORIES = (
    "TARGET_ACHIEVEMENT", "PUNCTUALITY", "NO_ABSENCE", "QUALITY",
    "EMPLOYEE_OF_MONTH", "INITIATIVE", "PROJECT_SUCCESS", "SALES",
    "ADMINISTRATIVE", "PERFORMANCE", "ATTENDANCE", "OTHER",
)


def upgrade() -> None:
    category_enum = sa.Enum(*REWARD_CATEGORIES, name="reward_category_enum")

    op.create_table(
        "companies",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(50), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("deleted_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "departments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("company_id", "name", name="uq_department_company_name"),
    )
    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("department_id", sa.Integer(), sa.ForeignKey("departments.id", ondelete="RESTRICT")),
        sa.Column("code", sa.String(32)),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("first_name", sa.String(80), nullable=False),
        sa.Column("last_name", sa.String(80)),
        sa.Column("doj", sa.Date()),
        sa.Column("dol", sa.Date()),
        sa.Column("base_salary", sa.Numeric(12, 2)),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("company_id", "code", name="uq_employee_company_code"),
    )
    op.create_index("ix_emp_company_id", "employees", ["company_id"])
    op.create_index("ix_emp_dept_id", "employees", ["department_id"])

    op.create_table(
        "attendance_days",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("employee_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("status", sa.Enum("PRESENT", "LATE", "ABSENT", "HALF_DAY", name="attendance_day_status_enum"), nullable=False),
        sa.Column("late_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("employee_id", "date", name="uq_attendance_day_emp_date"),
    )
    op.create_index("ix_attendance_day_emp_period", "attendance_days", ["employee_id", "date"])

    op.create_table(
        "performance_reviews",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("employee_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("overall_rating", sa.Numeric(4, 2)),
        sa.Column("goals_achievement", sa.Numeric(5, 2)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "reward_types",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("category", category_enum, nullable=False),
        sa.Column("calculation_method", sa.Enum(
            "FIXED_AMOUNT", "PERCENTAGE_SALARY", "PERCENTAGE_SALES",
            "PERCENTAGE_PROJECT_PROFIT", "POINTS", "NON_MONETARY",
            name="reward_calc_method_enum"), nullable=False),
        sa.Column("value", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("max_cap", sa.Numeric(12, 2)),
        sa.Column("eligibility_conditions", sa.JSON()),
        sa.Column("trigger_type", sa.Enum("MANUAL", "AUTOMATIC", name="reward_trigger_enum"), nullable=False),
        sa.Column("frequency", sa.Enum("MONTHLY", "QUARTERLY", "YEARLY", "ONE_TIME", name="reward_frequency_enum"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("effective_from", sa.Date()),
        sa.Column("effective_to", sa.Date()),
        sa.Column("created_by", sa.Integer()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime()),
        sa.UniqueConstraint("company_id", "name", name="uq_reward_type_company_name"),
    )
    op.create_index("ix_reward_type_auto", "reward_types", ["company_id", "is_active", "trigger_type", "category"])

    op.create_table(
        "reward_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("employee_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("reward_type_id", sa.Integer(), sa.ForeignKey("reward_types.id", ondelete="SET NULL"), index=True),
        sa.Column("reward_name", sa.String(120), nullable=False),
        # type already created with reward_types.category
        sa.Column("reward_category", sa.Enum(*REWARD_CATEGORIES, name="reward_category_enum").with_variant(
            postgresql.ENUM(*REWARD_CATEGORIES, name="reward_category_enum", create_type=False), "postgresql"),
            nullable=False),
        sa.Column("calculated_value", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("calculation_details", sa.JSON()),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("applied_month", sa.SmallInteger(), nullable=False),
        sa.Column("applied_year", sa.SmallInteger(), nullable=False),
        sa.Column("reason", sa.Text()),
        sa.Column("eligibility_met", sa.JSON()),
        sa.Column("status", sa.Enum("PENDING", "APPROVED", "REJECTED", "VOIDED", "APPLIED",
                                    name="reward_record_status_enum"), nullable=False),
        sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("triggered_by", sa.String(32)),
        sa.Column("created_by", sa.Integer()),
        sa.Column("approved_by", sa.Integer()),
        sa.Column("approved_at", sa.DateTime()),
        sa.Column("rejected_by", sa.Integer()),
        sa.Column("rejected_at", sa.DateTime()),
        sa.Column("rejection_reason", sa.Text()),
        sa.Column("voided_by", sa.Integer()),
        sa.Column("voided_at", sa.DateTime()),
        sa.Column("void_reason", sa.Text()),
        sa.Column("is_included_in_payroll", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("auto_trigger_key", sa.String(80)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime()),
        sa.UniqueConstraint("company_id", "auto_trigger_key", name="uq_reward_record_auto_trigger"),
    )
    op.create_index("ix_reward_record_period", "reward_records", ["company_id", "applied_year", "applied_month"])
    op.create_index("ix_reward_record_emp_type", "reward_records", ["employee_id", "reward_type_id", "created_at"])

    op.create_table(
        "eligibility_evaluation_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("employee_id", sa.Integer(), nullable=False, index=True),
        sa.Column("reward_type_id", sa.Integer(), nullable=False, index=True),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("is_eligible", sa.Boolean(), nullable=False),
        sa.Column("reason", sa.Text()),
        sa.Column("evidence", sa.JSON()),
        sa.Column("conditions_checked", sa.JSON()),
        sa.Column("evaluated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "reward_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("require_manager_approval", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("work_days", sa.String(20), nullable=False, server_default="0,1,2,3,4"),
        sa.Column("updated_at", sa.DateTime()),
    )

    op.create_table(
        "kudos",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("sender_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("receiver_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("reason", sa.String(500), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    for name in ("kudos", "reward_settings", "eligibility_evaluation_logs", "reward_records",
                 "reward_types", "performance_reviews", "attendance_days", "employees",
                 "departments", "companies"):
        op.drop_table(name)

    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        for enum_name in ("reward_record_status_enum", "reward_frequency_enum", "reward_trigger_enum",
                          "reward_calc_method_enum", "reward_category_enum", "attendance_day_status_enum"):
            op.execute(f"DROP TYPE IF EXISTS {enum_name}")
