from datetime import datetime
from rewards_api.extensions import db

REWARD_CATEGORIES = (
    "TARGET_ACHIEVEMENT", "PUNCTUALITY", "NO_ABSENCE", "QUALITY",
    "EMPLOYEE_OF_MONTH", "INITIATIVE", "PROJECT_SUCCESS", "SALES",
    "ADMINISTRATIVE", "PERFORMANCE", "ATTENDANCE", "OTHER",
)
CALCULATION_METHODS = (
    "FIXED_AMOUNT", "PERCENTAGE_SALARY", "PERCENTAGE_SALES",
    "PERCENTAGE_PROJECT_PROFIT", "POINTS", "NON_MONETARY",
)
TRIGGER_TYPES = ("MANUAL", "AUTOMATIC")
FREQUENCIES = ("MONTHLY", "QUARTERLY", "YEARLY", "ONE_TIME")
RECORD_STATUSES = ("PENDING", "APPROVED", "REJECTED", "VOIDED", "APPLIED")

# statuses that count towards cost / value totals
FINAL_STATUSES = ("APPROVED", "APPLIED")

# shared by reward_types.category and the reward_records snapshot
CategoryEnum = db.Enum(*REWARD_CATEGORIES, name="reward_category_enum")


class RewardType(db.Model):
    __tablename__ = "reward_types"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(CategoryEnum, nullable=False, default="OTHER")
    calculation_method = db.Column(db.Enum(*CALCULATION_METHODS, name="reward_calc_method_enum"),
                                   nullable=False, default="FIXED_AMOUNT")
    value = db.Column(db.Numeric(12, 2), nullable=False, default=0)     # amount, points or percent
    max_cap = db.Column(db.Numeric(12, 2), nullable=True)
    eligibility_conditions = db.Column(db.JSON)                          # see services/reward_conditions.py
    trigger_type = db.Column(db.Enum(*TRIGGER_TYPES, name="reward_trigger_enum"), nullable=False, default="MANUAL")
    frequency = db.Column(db.Enum(*FREQUENCIES, name="reward_frequency_enum"), nullable=False, default="MONTHLY")
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    priority = db.Column(db.Integer, nullable=False, default=100)
    effective_from = db.Column(db.Date, nullable=True)
    effective_to = db.Column(db.Date, nullable=True)

    created_by = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("company_id", "name", name="uq_reward_type_company_name"),
        db.Index("ix_reward_type_auto", "company_id", "is_active", "trigger_type", "category"),
    )


class RewardRecord(db.Model):
    __tablename__ = "reward_records"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    # weak reference; name/category below are the snapshot taken at creation
    reward_type_id = db.Column(db.Integer, db.ForeignKey("reward_types.id", ondelete="SET NULL"), nullable=True, index=True)
    reward_name = db.Column(db.String(120), nullable=False)
    reward_category = db.Column(CategoryEnum, nullable=False)

    calculated_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    calculation_details = db.Column(db.JSON)
    period_start = db.Column(db.Date, nullable=False)
    period_end = db.Column(db.Date, nullable=False)
    applied_month = db.Column(db.SmallInteger, nullable=False)
    applied_year = db.Column(db.SmallInteger, nullable=False)
    reason = db.Column(db.Text)
    eligibility_met = db.Column(db.JSON)

    status = db.Column(db.Enum(*RECORD_STATUSES, name="reward_record_status_enum"), nullable=False, default="PENDING")
    is_locked = db.Column(db.Boolean, nullable=False, default=False)
    triggered_by = db.Column(db.String(32))      # user id as text, or "SYSTEM"
    created_by = db.Column(db.Integer)

    approved_by = db.Column(db.Integer)
    approved_at = db.Column(db.DateTime)
    rejected_by = db.Column(db.Integer)
    rejected_at = db.Column(db.DateTime)
    rejection_reason = db.Column(db.Text)
    voided_by = db.Column(db.Integer)
    voided_at = db.Column(db.DateTime)
    void_reason = db.Column(db.Text)

    is_included_in_payroll = db.Column(db.Boolean, nullable=False, default=False)
    # set only for automatic triggers: "<type>:<employee>:<period_start>"
    auto_trigger_key = db.Column(db.String(80), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("company_id", "auto_trigger_key", name="uq_reward_record_auto_trigger"),
        db.Index("ix_reward_record_period", "company_id", "applied_year", "applied_month"),
        db.Index("ix_reward_record_emp_type", "employee_id", "reward_type_id", "created_at"),
    )

    employee = db.relationship("Employee", lazy="joined")
    reward_type = db.relationship("RewardType")


class EligibilityEvaluationLog(db.Model):
    """Append-only audit row, one per evaluation attempt."""
    __tablename__ = "eligibility_evaluation_logs"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id = db.Column(db.Integer, nullable=False, index=True)
    reward_type_id = db.Column(db.Integer, nullable=False, index=True)
    period_start = db.Column(db.Date, nullable=False)
    period_end = db.Column(db.Date, nullable=False)
    is_eligible = db.Column(db.Boolean, nullable=False)
    reason = db.Column(db.Text)
    evidence = db.Column(db.JSON)
    conditions_checked = db.Column(db.JSON)
    evaluated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)


class RewardSettings(db.Model):
    __tablename__ = "reward_settings"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, unique=True)
    require_manager_approval = db.Column(db.Boolean, nullable=False, default=True)
    work_days = db.Column(db.String(20), nullable=False, default="0,1,2,3,4")  # 0=Mon .. 6=Sun
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def work_day_set(self):
        out = set()
        for part in (self.work_days or "").split(","):
            part = part.strip()
            if part.isdigit() and 0 <= int(part) <= 6:
                out.add(int(part))
        return out or {0, 1, 2, 3, 4}
