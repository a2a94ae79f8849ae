# rewards_api/services/reward_repository.py
from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterable, List, Optional

from sqlalchemy import func, or_

from rewards_api.models.attendance import AttendanceDay
from rewards_api.models.employee import Employee
from rewards_api.models.kudos import Kudos
from rewards_api.models.performance import PerformanceReview
from rewards_api.models.rewards import (
    RewardType, RewardRecord, EligibilityEvaluationLog, RewardSettings,
)


class RewardRepository:
    """
    Store access for the reward engine. Every read is tenant scoped.

    Wraps a SQLAlchemy session (normally `db.session`); services receive an
    instance in their constructor instead of reaching for the global session.
    """

    def __init__(self, session):
        self.session = session

    # ---------- transactions ----------

    @contextmanager
    def atomic(self):
        """Commit on success, roll back and re-raise on any error."""
        try:
            yield self.session
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def add(self, obj):
        self.session.add(obj)
        return obj

    def delete(self, obj):
        self.session.delete(obj)

    def flush(self):
        self.session.flush()

    def commit(self):
        self.session.commit()

    def rollback(self):
        self.session.rollback()

    # ---------- employee directory ----------

    def get_employee(self, company_id: int, employee_id: int) -> Optional[Employee]:
        return (Employee.query
                .filter(Employee.company_id == company_id, Employee.id == employee_id)
                .first())

    def list_active_employees(self, company_id: int) -> List[Employee]:
        """Active employees that have an employee number assigned."""
        return (Employee.query
                .filter(Employee.company_id == company_id,
                        Employee.status == "active",
                        Employee.code.isnot(None),
                        Employee.code != "")
                .order_by(Employee.id.asc())
                .all())

    def employees_by_ids(self, company_id: int, ids: Iterable[int]) -> List[Employee]:
        ids = list(ids)
        if not ids:
            return []
        return Employee.query.filter(Employee.company_id == company_id, Employee.id.in_(ids)).all()

    # ---------- attendance / performance ----------

    def attendance_between(self, company_id: int, employee_id: int, start: date, end: date) -> List[AttendanceDay]:
        return (AttendanceDay.query
                .filter(AttendanceDay.company_id == company_id,
                        AttendanceDay.employee_id == employee_id,
                        AttendanceDay.date >= start,
                        AttendanceDay.date <= end)
                .order_by(AttendanceDay.date.asc())
                .all())

    def recent_attendance(self, company_id: int, employee_id: int, limit: int = 60) -> List[AttendanceDay]:
        return (AttendanceDay.query
                .filter(AttendanceDay.company_id == company_id,
                        AttendanceDay.employee_id == employee_id)
                .order_by(AttendanceDay.date.desc())
                .limit(limit)
                .all())

    def reviews_within(self, company_id: int, employee_id: int, start: date, end: date) -> List[PerformanceReview]:
        """Reviews whose whole period lies inside [start, end]."""
        return (PerformanceReview.query
                .filter(PerformanceReview.company_id == company_id,
                        PerformanceReview.employee_id == employee_id,
                        PerformanceReview.period_start >= start,
                        PerformanceReview.period_end <= end)
                .all())

    # ---------- settings ----------

    def get_settings(self, company_id: int) -> RewardSettings:
        """Tenant settings; a transient default row when none is stored."""
        s = RewardSettings.query.filter_by(company_id=company_id).first()
        if s is None:
            s = RewardSettings(company_id=company_id, require_manager_approval=True, work_days="0,1,2,3,4")
        return s

    # ---------- reward types ----------

    def get_reward_type(self, company_id: int, type_id: int) -> Optional[RewardType]:
        return (RewardType.query
                .filter(RewardType.company_id == company_id, RewardType.id == type_id)
                .first())

    def find_reward_type_by_name(self, company_id: int, name: str) -> Optional[RewardType]:
        return (RewardType.query
                .filter(RewardType.company_id == company_id, RewardType.name == name)
                .first())

    def list_reward_types(self, company_id: int, is_active: Optional[bool] = None,
                          category: Optional[str] = None, trigger_type: Optional[str] = None) -> List[RewardType]:
        q = RewardType.query.filter(RewardType.company_id == company_id)
        if is_active is not None:
            q = q.filter(RewardType.is_active == is_active)
        if category:
            q = q.filter(RewardType.category == category)
        if trigger_type:
            q = q.filter(RewardType.trigger_type == trigger_type)
        return q.order_by(RewardType.priority.asc(), RewardType.name.asc()).all()

    def count_records_for_type(self, company_id: int, type_id: int) -> int:
        return (RewardRecord.query
                .filter(RewardRecord.company_id == company_id, RewardRecord.reward_type_id == type_id)
                .count())

    # ---------- reward records ----------

    def get_record(self, company_id: int, record_id: int) -> Optional[RewardRecord]:
        return (RewardRecord.query
                .filter(RewardRecord.company_id == company_id, RewardRecord.id == record_id)
                .first())

    def find_recent_record(self, company_id: int, employee_id: int, type_id: int,
                           since: datetime) -> Optional[RewardRecord]:
        return (RewardRecord.query
                .filter(RewardRecord.company_id == company_id,
                        RewardRecord.employee_id == employee_id,
                        RewardRecord.reward_type_id == type_id,
                        RewardRecord.created_at >= since)
                .order_by(RewardRecord.created_at.desc())
                .first())

    def records_query(self, company_id: int, employee_id=None, reward_type_id=None, category=None,
                      status=None, statuses=None, month=None, year=None, start_date=None, end_date=None,
                      search=None, is_included_in_payroll=None):
        q = RewardRecord.query.filter(RewardRecord.company_id == company_id)
        if employee_id:
            q = q.filter(RewardRecord.employee_id == employee_id)
        if reward_type_id:
            q = q.filter(RewardRecord.reward_type_id == reward_type_id)
        if category:
            q = q.filter(RewardRecord.reward_category == category)
        if status:
            q = q.filter(RewardRecord.status == status)
        if statuses:
            q = q.filter(RewardRecord.status.in_(list(statuses)))
        if month:
            q = q.filter(RewardRecord.applied_month == month)
        if year:
            q = q.filter(RewardRecord.applied_year == year)
        if start_date:
            q = q.filter(RewardRecord.period_start >= start_date)
        if end_date:
            q = q.filter(RewardRecord.period_start <= end_date)
        if search:
            like = f"%{search}%"
            q = q.filter(or_(RewardRecord.reward_name.ilike(like), RewardRecord.reason.ilike(like)))
        if is_included_in_payroll is not None:
            q = q.filter(RewardRecord.is_included_in_payroll == is_included_in_payroll)
        return q

    # ---------- audit ----------

    def add_evaluation_log(self, log_row: EligibilityEvaluationLog) -> EligibilityEvaluationLog:
        self.session.add(log_row)
        return log_row

    def count_evaluation_logs(self, company_id: int, employee_id: int = None, reward_type_id: int = None) -> int:
        q = EligibilityEvaluationLog.query.filter(EligibilityEvaluationLog.company_id == company_id)
        if employee_id:
            q = q.filter(EligibilityEvaluationLog.employee_id == employee_id)
        if reward_type_id:
            q = q.filter(EligibilityEvaluationLog.reward_type_id == reward_type_id)
        return q.count()

    # ---------- kudos ----------

    def kudos_between(self, company_id: int, start: datetime, end: datetime):
        """(count, total_points) for kudos created in [start, end)."""
        row = (self.session.query(func.count(Kudos.id), func.coalesce(func.sum(Kudos.points), 0))
               .filter(Kudos.company_id == company_id,
                       Kudos.created_at >= start,
                       Kudos.created_at < end)
               .one())
        return int(row[0] or 0), int(row[1] or 0)
