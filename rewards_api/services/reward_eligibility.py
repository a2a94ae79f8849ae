# rewards_api/services/reward_eligibility.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
import logging
from typing import Any, Callable, Dict, List, Optional

from rewards_api.common.errors import NotFoundError
from rewards_api.models.rewards import EligibilityEvaluationLog, RewardType
from rewards_api.services.reward_conditions import (
    parse_conditions, ConditionsError, EligibilityConditions,
)

log = logging.getLogger(__name__)

ATTENDED_STATUSES = ("PRESENT", "LATE", "HALF_DAY")


@dataclass
class Verdict:
    eligible: bool
    reason: str = ""
    evidence: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"eligible": self.eligible, "reason": self.reason, "evidence": self.evidence}


def _avg(values: List[Decimal]) -> Optional[float]:
    vals = [float(v) for v in values if v is not None]
    if not vals:
        return None
    return round(sum(vals) / len(vals), 2)


class EligibilityEvaluator:
    """
    Decides whether an employee qualifies for a reward type over a period.

    Checks run in order tenure -> attendance -> performance; each section only
    runs when the reward type declares a threshold for it. Every call leaves
    exactly one EligibilityEvaluationLog row behind, committed on its own so
    that a caller rolling back (e.g. an ineligible apply) keeps the audit trail.
    """

    def __init__(self, repo, clock: Callable[[], date] = date.today):
        self.repo = repo
        self.clock = clock

    def evaluate(self, company_id: int, employee_id: int, reward_type_id: int,
                 period_start: date, period_end: date) -> Verdict:
        rt = self.repo.get_reward_type(company_id, reward_type_id)
        if rt is None:
            raise NotFoundError("Reward type not found")

        conditions_snapshot = rt.eligibility_conditions
        verdict = self._check(company_id, employee_id, rt, period_start, period_end)

        self.repo.add_evaluation_log(EligibilityEvaluationLog(
            company_id=company_id,
            employee_id=employee_id,
            reward_type_id=rt.id,
            period_start=period_start,
            period_end=period_end,
            is_eligible=verdict.eligible,
            reason=verdict.reason or None,
            evidence=verdict.evidence,
            conditions_checked=conditions_snapshot,
        ))
        self.repo.commit()
        log.debug("eligibility employee=%s type=%s -> %s (%s)",
                  employee_id, rt.id, verdict.eligible, verdict.reason)
        return verdict

    def evaluate_all_active(self, company_id: int, reward_type_id: int,
                            period_start: date, period_end: date) -> List[Dict[str, Any]]:
        """Eligible {employee_id, verdict} pairs among active numbered employees."""
        if self.repo.get_reward_type(company_id, reward_type_id) is None:
            raise NotFoundError("Reward type not found")

        out = []
        for emp in self.repo.list_active_employees(company_id):
            try:
                v = self.evaluate(company_id, emp.id, reward_type_id, period_start, period_end)
            except Exception as e:
                self.repo.rollback()
                log.warning("eligibility failed for employee %s: %s", emp.id, e)
                continue
            if v.eligible:
                out.append({"employee_id": emp.id, "verdict": v})
        return out

    # ---------- checks ----------

    def _check(self, company_id, employee_id, rt: RewardType, period_start, period_end) -> Verdict:
        if not rt.is_active:
            return Verdict(False, "reward type is inactive", {"is_active": False})

        try:
            conds = parse_conditions(rt.eligibility_conditions)
        except ConditionsError as e:
            return Verdict(False, "invalid conditions", {"error": str(e), "errors": e.errors})

        if rt.effective_from and period_end < rt.effective_from:
            return Verdict(False, "period is before the reward type effective window",
                           {"effective_from": rt.effective_from.isoformat()})
        if rt.effective_to and period_start > rt.effective_to:
            return Verdict(False, "period is after the reward type effective window",
                           {"effective_to": rt.effective_to.isoformat()})

        emp = self.repo.get_employee(company_id, employee_id)
        if emp is None:
            return Verdict(False, "employee not found", {"employee_id": employee_id})

        evidence: Dict[str, Any] = {}

        if conds.tenure.is_set():
            ok, reason = self._check_tenure(emp, conds, evidence)
            if not ok:
                return Verdict(False, reason, evidence)

        if conds.attendance.is_set():
            ok, reason = self._check_attendance(company_id, emp.id, conds, period_start, period_end, evidence)
            if not ok:
                return Verdict(False, reason, evidence)

        if conds.performance.is_set():
            ok, reason = self._check_performance(company_id, emp.id, conds, period_start, period_end, evidence)
            if not ok:
                return Verdict(False, reason, evidence)

        return Verdict(True, "all conditions met", evidence)

    def _check_tenure(self, emp, conds: EligibilityConditions, evidence):
        required = conds.tenure.min_service_days
        if emp.doj is None:
            evidence["tenure"] = {"required_days": required, "service_days": None}
            return False, "hire date not defined"
        days = (self.clock() - emp.doj).days
        evidence["tenure"] = {"required_days": required, "service_days": days}
        if days < required:
            return False, f"service of {days} days is below the required {required} days"
        return True, ""

    def _check_attendance(self, company_id, employee_id, conds: EligibilityConditions,
                          period_start, period_end, evidence):
        c = conds.attendance
        rows = self.repo.attendance_between(company_id, employee_id, period_start, period_end)

        present = sum(1 for r in rows if r.status == "PRESENT")
        late = sum(1 for r in rows if r.status == "LATE")
        absent = sum(1 for r in rows if r.status == "ABSENT")
        half = sum(1 for r in rows if r.status == "HALF_DAY")
        late_minutes = sum(int(r.late_minutes or 0) for r in rows)
        total = len(rows)
        attended = sum(1 for r in rows if r.status in ATTENDED_STATUSES)
        rate = round(attended * 100.0 / total, 2) if total else 0.0

        evidence["attendance"] = {
            "total_days": total,
            "present_days": present,
            "late_days": late,
            "absent_days": absent,
            "half_days": half,
            "total_late_minutes": late_minutes,
            "attendance_rate": rate,
        }

        failures = []
        if c.no_lateness and late > 0:
            failures.append(f"late on {late} days")
        if c.no_absences and absent > 0:
            failures.append(f"absent on {absent} days")
        if c.max_late_minutes is not None and late_minutes > c.max_late_minutes:
            failures.append(f"late minutes {late_minutes} exceed maximum {c.max_late_minutes}")
        if c.min_attendance_rate is not None and rate < c.min_attendance_rate:
            failures.append(f"attendance rate {rate}% is below minimum {c.min_attendance_rate}%")

        if failures:
            return False, "; ".join(failures)
        return True, ""

    def _check_performance(self, company_id, employee_id, conds: EligibilityConditions,
                           period_start, period_end, evidence):
        c = conds.performance
        reviews = self.repo.reviews_within(company_id, employee_id, period_start, period_end)
        if not reviews:
            evidence["performance"] = {"review_count": 0}
            return False, "no performance reviews in period"

        avg_rating = _avg([r.overall_rating for r in reviews])
        avg_goals = _avg([r.goals_achievement for r in reviews])
        evidence["performance"] = {
            "review_count": len(reviews),
            "average_rating": avg_rating,
            "average_goals_achievement": avg_goals,
        }

        failures = []
        if c.min_performance_score is not None:
            if avg_rating is None or avg_rating < c.min_performance_score:
                failures.append(f"average rating {avg_rating} is below minimum {c.min_performance_score}")
        if c.min_goals_achievement is not None:
            if avg_goals is None or avg_goals < c.min_goals_achievement:
                failures.append(f"goals achievement {avg_goals}% is below minimum {c.min_goals_achievement}%")

        if failures:
            return False, "; ".join(failures)
        return True, ""
