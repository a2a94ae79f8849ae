from datetime import datetime
from rewards_api.extensions import db

ATTENDANCE_STATUSES = ("PRESENT", "LATE", "ABSENT", "HALF_DAY")


class AttendanceDay(db.Model):
    """One resolved attendance outcome per employee per day."""
    __tablename__ = "attendance_days"

    id = db.Column(db.Integer, primary_key=True)
    company_id  = db.Column(db.Integer, db.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    date        = db.Column(db.Date, nullable=False)
    status      = db.Column(db.Enum(*ATTENDANCE_STATUSES, name="attendance_day_status_enum"), nullable=False)
    late_minutes = db.Column(db.Integer, nullable=False, default=0)
    created_at  = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("employee_id", "date", name="uq_attendance_day_emp_date"),
        db.Index("ix_attendance_day_emp_period", "employee_id", "date"),
    )
