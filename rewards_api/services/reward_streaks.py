# rewards_api/services/reward_streaks.py
from __future__ import annotations

from datetime import date, datetime, timedelta
import logging
from typing import Any, Callable, Dict, List

from sqlalchemy.exc import IntegrityError

from rewards_api.services.reward_conditions import parse_conditions, ConditionsError
from rewards_api.services.reward_workflow import SYSTEM

log = logging.getLogger(__name__)

STREAK_HISTORY_ROWS = 60
MAX_STREAK = 60
# Fixed rolling window, independent of the reward type's frequency.
# TODO: derive from RewardType.frequency once product confirms QUARTERLY/YEARLY semantics.
DUPLICATE_WINDOW_DAYS = 25


class AttendanceStreakCalculator:
    """
    Consecutive qualifying work days ending today (or the last work day).

    Non-work days per the tenant's RewardSettings.work_days are stepped over.
    A work day without an attendance row ends the streak, except today,
    which may simply not be marked yet.
    """

    def __init__(self, repo, clock: Callable[[], date] = date.today):
        self.repo = repo
        self.clock = clock

    def current_streak(self, company_id: int, employee_id: int, count: str = "present") -> int:
        rows = self.repo.recent_attendance(company_id, employee_id, limit=STREAK_HISTORY_ROWS)
        if not rows:
            return 0

        work_days = self.repo.get_settings(company_id).work_day_set()
        by_date = {r.date: r.status for r in rows}
        today = self.clock()
        oldest = min(by_date)

        check = today
        streak = 0
        while check >= oldest and streak < MAX_STREAK:
            if check.weekday() not in work_days:
                check -= timedelta(days=1)
                continue

            status = by_date.get(check)
            if count == "present":
                matched = status == "PRESENT"
            else:
                matched = status is not None and status != "ABSENT"

            if matched:
                streak += 1
            elif check == today and status is None:
                pass
            else:
                break
            check -= timedelta(days=1)

        return streak


class StreakTrigger:
    """Applies AUTOMATIC attendance rewards once an employee's streak reaches min_streak."""

    def __init__(self, repo, workflow, calculator: AttendanceStreakCalculator,
                 clock: Callable[[], date] = date.today):
        self.repo = repo
        self.workflow = workflow
        self.calculator = calculator
        self.clock = clock

    def _streak_types(self, company_id: int):
        out = []
        types = self.repo.list_reward_types(company_id, is_active=True,
                                            category="ATTENDANCE", trigger_type="AUTOMATIC")
        for rt in types:
            try:
                conds = parse_conditions(rt.eligibility_conditions)
            except ConditionsError as e:
                log.warning("reward type %s has invalid conditions, skipped: %s", rt.id, e)
                continue
            if conds.streak.is_set():
                out.append((rt, conds.streak))
        return out

    def check_and_apply(self, company_id: int, employee_id: int) -> Dict[str, Any]:
        today = self.clock()
        result: Dict[str, Any] = {"employee_id": employee_id, "streak": 0,
                                  "applied": [], "skipped": [], "failed": []}
        types = self._streak_types(company_id)
        if not types:
            return result

        streaks: Dict[str, int] = {}
        for rt, cond in types:
            if cond.count not in streaks:
                streaks[cond.count] = self.calculator.current_streak(company_id, employee_id, cond.count)
            streak = streaks[cond.count]
            result["streak"] = max(result["streak"], streak)

            if streak < cond.min_streak:
                continue

            since = datetime.combine(today - timedelta(days=DUPLICATE_WINDOW_DAYS), datetime.min.time())
            if self.repo.find_recent_record(company_id, employee_id, rt.id, since):
                result["skipped"].append({"reward_type_id": rt.id, "reason": "already rewarded recently"})
                continue

            period_start = today - timedelta(days=streak)
            key = f"{rt.id}:{employee_id}:{period_start.isoformat()}"
            try:
                rec = self.workflow.apply(
                    company_id, employee_id, rt.id, period_start, today, SYSTEM,
                    reason=f"Automatic reward: {streak} consecutive attendance days (threshold {cond.min_streak})",
                    auto_trigger_key=key,
                )
            except IntegrityError:
                self.repo.rollback()
                result["skipped"].append({"reward_type_id": rt.id, "reason": "duplicate automatic reward"})
                continue
            except Exception as e:
                self.repo.rollback()
                msg = getattr(e, "message", None) or str(e)
                log.warning("streak reward type=%s employee=%s failed: %s", rt.id, employee_id, msg)
                result["failed"].append({"reward_type_id": rt.id, "reason": msg})
                continue
            result["applied"].append(rec.id)

        return result

    def process_all_employees(self, company_id: int) -> Dict[str, Any]:
        results: List[Dict[str, Any]] = []
        errors: List[Dict[str, Any]] = []
        applied = 0
        employees = self.repo.list_active_employees(company_id)
        for emp in employees:
            try:
                r = self.check_and_apply(company_id, emp.id)
            except Exception as e:
                self.repo.rollback()
                log.warning("streak processing failed for employee %s: %s", emp.id, e)
                errors.append({"employee_id": emp.id, "reason": str(e)})
                continue
            applied += len(r["applied"])
            if r["applied"] or r["failed"]:
                results.append(r)
        log.info("streak run company=%s: %d employees, %d rewards, %d errors",
                 company_id, len(employees), applied, len(errors))
        return {"processed": len(employees), "rewards_applied": applied,
                "results": results, "errors": errors}
