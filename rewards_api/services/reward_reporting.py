# rewards_api/services/reward_reporting.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func

from rewards_api.common.errors import NotFoundError, ValidationError
from rewards_api.models.employee import Employee
from rewards_api.models.master import Department
from rewards_api.models.rewards import RewardRecord, FINAL_STATUSES

SORTABLE = {"created_at", "calculated_value", "period_start", "status", "reward_name", "applied_year"}


def _money(x) -> float:
    return float(Decimal(str(x or 0)).quantize(Decimal("0.01")))


class ReportingAggregator:
    """Read-only rollups over reward records. Sums only count APPROVED/APPLIED."""

    def __init__(self, repo):
        self.repo = repo

    # ---------- listing ----------

    def list_records(self, company_id: int, filters: Optional[Dict[str, Any]] = None,
                     page: int = 1, limit: int = 20, sort_by: str = "created_at", sort_order: str = "desc"):
        f = dict(filters or {})
        q = self.repo.records_query(company_id, **f)
        total = q.count()

        col = getattr(RewardRecord, sort_by if sort_by in SORTABLE else "created_at")
        q = q.order_by(col.asc() if sort_order == "asc" else col.desc(), RewardRecord.id.desc())
        items = q.offset((page - 1) * limit).limit(limit).all()
        return {
            "items": items,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": (total + limit - 1) // limit if limit else 0,
            },
        }

    def get_record(self, company_id: int, record_id: int) -> RewardRecord:
        rec = self.repo.get_record(company_id, record_id)
        if rec is None:
            raise NotFoundError("Reward record not found")
        return rec

    # ---------- aggregates ----------

    def _scoped(self, company_id, month=None, year=None, start_date=None, end_date=None):
        if month and not year:
            raise ValidationError("year is required when month is given")
        if month and not 1 <= int(month) <= 12:
            raise ValidationError("month must be 1..12")
        if year:
            return self.repo.records_query(company_id, month=month, year=year)
        return self.repo.records_query(company_id, start_date=start_date, end_date=end_date)

    def statistics(self, company_id: int, month: int = None, year: int = None,
                   start_date: date = None, end_date: date = None) -> Dict[str, Any]:
        base = self._scoped(company_id, month, year, start_date, end_date)
        final = base.filter(RewardRecord.status.in_(FINAL_STATUSES))

        total = base.count()
        total_value = final.with_entities(func.coalesce(func.sum(RewardRecord.calculated_value), 0)).scalar()

        by_status = (base.with_entities(RewardRecord.status, func.count(RewardRecord.id),
                                        func.coalesce(func.sum(RewardRecord.calculated_value), 0))
                     .group_by(RewardRecord.status).all())
        by_category = (final.with_entities(RewardRecord.reward_category, func.count(RewardRecord.id),
                                           func.coalesce(func.sum(RewardRecord.calculated_value), 0))
                       .group_by(RewardRecord.reward_category).all())

        sum_col = func.sum(RewardRecord.calculated_value)
        top = (final.with_entities(RewardRecord.employee_id, func.count(RewardRecord.id), sum_col)
               .group_by(RewardRecord.employee_id)
               .order_by(sum_col.desc())
               .limit(10).all())
        emps = {e.id: e for e in self.repo.employees_by_ids(company_id, [t[0] for t in top])}

        return {
            "total": total,
            "total_value": _money(total_value),
            "by_status": [{"status": s, "count": c, "value": _money(v)} for s, c, v in by_status],
            "by_category": [{"category": k, "count": c, "value": _money(v)} for k, c, v in by_category],
            "top_employees": [
                {
                    "employee": _emp_brief(emps.get(eid)),
                    "reward_count": c,
                    "total_value": _money(v),
                }
                for eid, c, v in top
            ],
        }

    def monthly_report(self, company_id: int, month: int, year: int) -> Dict[str, Any]:
        if not (1 <= int(month) <= 12):
            raise ValidationError("month must be 1..12")
        base = self.repo.records_query(company_id, month=month, year=year)
        final = base.filter(RewardRecord.status.in_(FINAL_STATUSES))

        counts = dict(base.with_entities(RewardRecord.status, func.count(RewardRecord.id))
                      .group_by(RewardRecord.status).all())
        total_value = final.with_entities(func.coalesce(func.sum(RewardRecord.calculated_value), 0)).scalar()

        by_category = (final.with_entities(RewardRecord.reward_category, func.count(RewardRecord.id),
                                           func.coalesce(func.sum(RewardRecord.calculated_value), 0))
                       .group_by(RewardRecord.reward_category).all())

        by_department = (final.join(Employee, Employee.id == RewardRecord.employee_id)
                         .outerjoin(Department, Department.id == Employee.department_id)
                         .with_entities(Department.name, func.count(RewardRecord.id),
                                        func.coalesce(func.sum(RewardRecord.calculated_value), 0))
                         .group_by(Department.name).all())

        start = datetime(int(year), int(month), 1)
        end = datetime(int(year) + 1, 1, 1) if int(month) == 12 else datetime(int(year), int(month) + 1, 1)
        kudos_count, kudos_points = self.repo.kudos_between(company_id, start, end)

        return {
            "month": int(month),
            "year": int(year),
            "total_rewards": sum(counts.values()),
            "approved_rewards": counts.get("APPROVED", 0) + counts.get("APPLIED", 0),
            "pending_rewards": counts.get("PENDING", 0),
            "total_value": _money(total_value),
            "by_category": [{"category": k, "count": c, "value": _money(v)} for k, c, v in by_category],
            "by_department": [{"department": d or "Unassigned", "count": c, "value": _money(v)}
                              for d, c, v in by_department],
            "kudos": {"count": kudos_count, "points": kudos_points},
        }

    def cost_analysis(self, company_id: int, start_date: date, end_date: date) -> Dict[str, Any]:
        if start_date and end_date and end_date < start_date:
            raise ValidationError("end_date must be >= start_date")
        final = self.repo.records_query(company_id, start_date=start_date, end_date=end_date,
                                        statuses=FINAL_STATUSES)
        rows = final.with_entities(RewardRecord.reward_name, RewardRecord.applied_year,
                                   RewardRecord.applied_month, RewardRecord.calculated_value).all()

        total = Decimal("0")
        by_type: Dict[str, Decimal] = {}
        trend: Dict[str, Decimal] = {}
        for name, y, m, v in rows:
            v = Decimal(str(v or 0))
            total += v
            by_type[name] = by_type.get(name, Decimal("0")) + v
            key = f"{int(y):04d}-{int(m):02d}"
            trend[key] = trend.get(key, Decimal("0")) + v

        return {
            "start_date": start_date.isoformat() if start_date else None,
            "end_date": end_date.isoformat() if end_date else None,
            "total_cost": _money(total),
            "record_count": len(rows),
            "by_reward_type": {k: _money(v) for k, v in sorted(by_type.items())},
            "monthly_trend": {k: _money(v) for k, v in sorted(trend.items())},
        }

    def employee_history(self, company_id: int, employee_id: int, year: int = None,
                         category: str = None, status: str = None) -> Dict[str, Any]:
        emp = self.repo.get_employee(company_id, employee_id)
        if emp is None:
            raise NotFoundError("Employee not found")
        q = self.repo.records_query(company_id, employee_id=employee_id, year=year,
                                    category=category, status=status)
        records = q.order_by(RewardRecord.created_at.desc(), RewardRecord.id.desc()).all()
        final = [r for r in records if r.status in FINAL_STATUSES]
        return {
            "employee": _emp_brief(emp),
            "records": records,
            "summary": {
                "total_rewards": len(final),
                "total_value": _money(sum((Decimal(str(r.calculated_value or 0)) for r in final), Decimal("0"))),
            },
        }


def _emp_brief(e: Optional[Employee]) -> Optional[Dict[str, Any]]:
    if e is None:
        return None
    return {
        "id": e.id,
        "code": e.code,
        "name": e.full_name,
        "department": e.department.name if e.department else None,
    }
