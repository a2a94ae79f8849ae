# rewards_api/services/reward_conditions.py
"""
Eligibility-condition document stored on RewardType.eligibility_conditions.

Canonical (tagged) shape, every section optional:

  {
    "tenure":      {"min_service_days": 90},
    "attendance":  {"no_lateness": true, "no_absences": true,
                    "max_late_minutes": 30, "min_attendance_rate": 95},
    "performance": {"min_performance_score": 4.0, "min_goals_achievement": 80},
    "streak":      {"min_streak": 20, "count": "present"}
  }

Older rows used a flat camelCase object (minServiceDays, noLateness, ...);
those keys are folded into the tagged shape by parse_conditions().
"""
from __future__ import annotations

import json
from dataclasses import dataclass, asdict, field
from typing import Any, Dict, Optional

STREAK_COUNT_MODES = ("present", "attended")

_LEGACY_KEYS = {
    "minServiceDays": ("tenure", "min_service_days"),
    "noLateness": ("attendance", "no_lateness"),
    "noAbsences": ("attendance", "no_absences"),
    "maxLateMinutes": ("attendance", "max_late_minutes"),
    "minAttendanceRate": ("attendance", "min_attendance_rate"),
    "minPerformanceScore": ("performance", "min_performance_score"),
    "minGoalsAchievement": ("performance", "min_goals_achievement"),
    "minStreak": ("streak", "min_streak"),
    "streakCount": ("streak", "count"),
}


class ConditionsError(ValueError):
    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = errors or []


@dataclass(frozen=True)
class TenureCondition:
    min_service_days: Optional[int] = None

    def is_set(self) -> bool:
        return self.min_service_days is not None


@dataclass(frozen=True)
class AttendanceCondition:
    no_lateness: bool = False
    no_absences: bool = False
    max_late_minutes: Optional[int] = None
    min_attendance_rate: Optional[float] = None

    def is_set(self) -> bool:
        return (self.no_lateness or self.no_absences
                or self.max_late_minutes is not None
                or self.min_attendance_rate is not None)


@dataclass(frozen=True)
class PerformanceCondition:
    min_performance_score: Optional[float] = None
    min_goals_achievement: Optional[float] = None

    def is_set(self) -> bool:
        return self.min_performance_score is not None or self.min_goals_achievement is not None


@dataclass(frozen=True)
class StreakCondition:
    min_streak: Optional[int] = None
    count: str = "present"

    def is_set(self) -> bool:
        return self.min_streak is not None


@dataclass(frozen=True)
class EligibilityConditions:
    tenure: TenureCondition = field(default_factory=TenureCondition)
    attendance: AttendanceCondition = field(default_factory=AttendanceCondition)
    performance: PerformanceCondition = field(default_factory=PerformanceCondition)
    streak: StreakCondition = field(default_factory=StreakCondition)

    def is_empty(self) -> bool:
        return not any(s.is_set() for s in (self.tenure, self.attendance, self.performance, self.streak))

    def to_dict(self) -> Dict[str, Any]:
        """Canonical JSON form; sections without any threshold are dropped."""
        out: Dict[str, Any] = {}
        for name in ("tenure", "attendance", "performance", "streak"):
            section = getattr(self, name)
            if section.is_set():
                out[name] = {k: v for k, v in asdict(section).items() if v is not None and v is not False}
        return out


# ---------- field coercion ----------

def _int(errors, field, v, minimum=0):
    if v is None:
        return None
    if isinstance(v, bool):
        errors.append({"field": field, "message": "must be an integer"})
        return None
    try:
        n = int(v)
    except (TypeError, ValueError):
        errors.append({"field": field, "message": "must be an integer"})
        return None
    if isinstance(v, float) and v != n:
        errors.append({"field": field, "message": "must be a whole number"})
        return None
    if n < minimum:
        errors.append({"field": field, "message": f"must be >= {minimum}"})
        return None
    return n

def _num(errors, field, v, maximum=None):
    if v is None:
        return None
    if isinstance(v, bool):
        errors.append({"field": field, "message": "must be a number"})
        return None
    try:
        n = float(v)
    except (TypeError, ValueError):
        errors.append({"field": field, "message": "must be a number"})
        return None
    if n < 0:
        errors.append({"field": field, "message": "must be >= 0"})
        return None
    if maximum is not None and n > maximum:
        errors.append({"field": field, "message": f"must be <= {maximum}"})
        return None
    return n

def _flag(errors, field, v):
    if v is None:
        return False
    if not isinstance(v, bool):
        errors.append({"field": field, "message": "must be true or false"})
        return False
    return v

def _section(errors, doc, name, allowed):
    raw = doc.get(name)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        errors.append({"field": name, "message": "must be an object"})
        return {}
    for k in raw:
        if k not in allowed:
            errors.append({"field": f"{name}.{k}", "message": "unknown condition"})
    return raw


def _fold_legacy(doc: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge flat legacy keys into their tagged sections. A key present in both
    forms keeps the tagged value regardless of dict order.
    """
    out: Dict[str, Any] = {}
    for k, v in doc.items():
        if k in _LEGACY_KEYS:
            continue
        out[k] = dict(v) if isinstance(v, dict) else v
    for k, v in doc.items():
        if k not in _LEGACY_KEYS:
            continue
        section, field = _LEGACY_KEYS[k]
        target = out.setdefault(section, {})
        if isinstance(target, dict):
            target.setdefault(field, v)
    return out


def parse_conditions(raw) -> EligibilityConditions:
    """
    Parse a stored/submitted condition document. None or {} means "no conditions".
    Raises ConditionsError listing every problem found.
    """
    if raw is None or raw == "":
        return EligibilityConditions()
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise ConditionsError("eligibility_conditions is not valid JSON")
    if not isinstance(raw, dict):
        raise ConditionsError("eligibility_conditions must be an object")

    doc = _fold_legacy(raw)
    errors = []
    for k in doc:
        if k not in ("tenure", "attendance", "performance", "streak"):
            errors.append({"field": k, "message": "unknown condition section"})

    t = _section(errors, doc, "tenure", {"min_service_days"})
    a = _section(errors, doc, "attendance", {"no_lateness", "no_absences", "max_late_minutes", "min_attendance_rate"})
    p = _section(errors, doc, "performance", {"min_performance_score", "min_goals_achievement"})
    s = _section(errors, doc, "streak", {"min_streak", "count"})

    tenure = TenureCondition(
        min_service_days=_int(errors, "tenure.min_service_days", t.get("min_service_days")),
    )
    attendance = AttendanceCondition(
        no_lateness=_flag(errors, "attendance.no_lateness", a.get("no_lateness")),
        no_absences=_flag(errors, "attendance.no_absences", a.get("no_absences")),
        max_late_minutes=_int(errors, "attendance.max_late_minutes", a.get("max_late_minutes")),
        min_attendance_rate=_num(errors, "attendance.min_attendance_rate", a.get("min_attendance_rate"), maximum=100),
    )
    performance = PerformanceCondition(
        min_performance_score=_num(errors, "performance.min_performance_score", p.get("min_performance_score")),
        min_goals_achievement=_num(errors, "performance.min_goals_achievement", p.get("min_goals_achievement"), maximum=100),
    )
    count = str(s.get("count") or "present").strip().lower()
    if count not in STREAK_COUNT_MODES:
        errors.append({"field": "streak.count", "message": f"must be one of {', '.join(STREAK_COUNT_MODES)}"})
        count = "present"
    streak = StreakCondition(
        min_streak=_int(errors, "streak.min_streak", s.get("min_streak"), minimum=1),
        count=count,
    )

    if errors:
        raise ConditionsError("invalid eligibility conditions", errors)
    return EligibilityConditions(tenure=tenure, attendance=attendance, performance=performance, streak=streak)
