# rewards_api/services/reward_catalog.py
from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
import logging
from typing import Any, Dict, List, Optional

from rewards_api.common.errors import ValidationError, NotFoundError, ConflictError
from rewards_api.models.rewards import (
    RewardType, REWARD_CATEGORIES, CALCULATION_METHODS, TRIGGER_TYPES, FREQUENCIES,
)
from rewards_api.services.reward_conditions import parse_conditions, ConditionsError

log = logging.getLogger(__name__)

PERCENT_METHODS = ("PERCENTAGE_SALARY", "PERCENTAGE_SALES", "PERCENTAGE_PROJECT_PROFIT")

# Starter catalog for a new company; seed_defaults() is idempotent by name.
DEFAULT_REWARD_TYPES: List[Dict[str, Any]] = [
    {
        "name": "Perfect Attendance",
        "description": "No absences and no late arrivals during the month.",
        "category": "NO_ABSENCE",
        "calculation_method": "FIXED_AMOUNT",
        "value": 500,
        "trigger_type": "MANUAL",
        "frequency": "MONTHLY",
        "priority": 10,
        "eligibility_conditions": {"attendance": {"no_absences": True, "no_lateness": True}},
    },
    {
        "name": "Punctuality Award",
        "description": "At most 30 late minutes across the month.",
        "category": "PUNCTUALITY",
        "calculation_method": "FIXED_AMOUNT",
        "value": 250,
        "trigger_type": "MANUAL",
        "frequency": "MONTHLY",
        "priority": 20,
        "eligibility_conditions": {"attendance": {"max_late_minutes": 30, "min_attendance_rate": 95}},
    },
    {
        "name": "Attendance Streak (20 days)",
        "description": "Granted automatically after 20 consecutive working days present.",
        "category": "ATTENDANCE",
        "calculation_method": "POINTS",
        "value": 100,
        "trigger_type": "AUTOMATIC",
        "frequency": "MONTHLY",
        "priority": 30,
        "eligibility_conditions": {"streak": {"min_streak": 20, "count": "present"}},
    },
    {
        "name": "Employee of the Month",
        "description": "Monthly recognition for the top performer.",
        "category": "EMPLOYEE_OF_MONTH",
        "calculation_method": "PERCENTAGE_SALARY",
        "value": 10,
        "max_cap": 1000,
        "trigger_type": "MANUAL",
        "frequency": "MONTHLY",
        "priority": 40,
        "eligibility_conditions": {"tenure": {"min_service_days": 90},
                                   "performance": {"min_performance_score": 4}},
    },
    {
        "name": "Quarterly Performance Bonus",
        "description": "Rating and goals achievement above target for the quarter.",
        "category": "PERFORMANCE",
        "calculation_method": "PERCENTAGE_SALARY",
        "value": 5,
        "trigger_type": "MANUAL",
        "frequency": "QUARTERLY",
        "priority": 50,
        "eligibility_conditions": {"performance": {"min_performance_score": 3.5, "min_goals_achievement": 80}},
    },
    {
        "name": "Initiative Certificate",
        "description": "Non-monetary recognition for initiative.",
        "category": "INITIATIVE",
        "calculation_method": "NON_MONETARY",
        "value": 0,
        "trigger_type": "MANUAL",
        "frequency": "ONE_TIME",
        "priority": 60,
        "eligibility_conditions": None,
    },
]


def _d(s) -> Optional[date]:
    if not s: return None
    if isinstance(s, date): return s
    try: return date.fromisoformat(str(s))
    except Exception: return None

_TRUE = ("1", "true", "yes")
_FALSE = ("0", "false", "no")

def _bool(x) -> Optional[bool]:
    """Strict flag parsing; None when the value is not recognizably true/false."""
    if isinstance(x, bool): return x
    if isinstance(x, int) and x in (0, 1): return bool(x)
    s = str(x).strip().lower() if x is not None else ""
    if s in _TRUE: return True
    if s in _FALSE: return False
    return None

def _dec(x) -> Optional[Decimal]:
    if x is None or x == "": return None
    try: return Decimal(str(x))
    except (InvalidOperation, ValueError): return None


class RewardTypeCatalog:
    def __init__(self, repo):
        self.repo = repo

    # ---------- reads ----------

    def list_types(self, company_id: int, is_active: Optional[bool] = None,
                   category: Optional[str] = None, trigger_type: Optional[str] = None) -> List[RewardType]:
        return self.repo.list_reward_types(company_id, is_active=is_active,
                                           category=category, trigger_type=trigger_type)

    def get_type(self, company_id: int, type_id: int) -> RewardType:
        rt = self.repo.get_reward_type(company_id, type_id)
        if rt is None:
            raise NotFoundError("Reward type not found")
        return rt

    # ---------- writes ----------

    def create_type(self, company_id: int, data: Dict[str, Any], created_by: Optional[int] = None) -> RewardType:
        fields = self._validate(data, partial=False)
        if self.repo.find_reward_type_by_name(company_id, fields["name"]):
            raise ConflictError(f"Reward type '{fields['name']}' already exists")
        with self.repo.atomic():
            rt = RewardType(company_id=company_id, created_by=created_by, **fields)
            self.repo.add(rt)
        log.info("reward type %s created for company %s", rt.id, company_id)
        return rt

    def update_type(self, company_id: int, type_id: int, data: Dict[str, Any]) -> RewardType:
        rt = self.get_type(company_id, type_id)
        fields = self._validate(data, partial=True, existing=rt)
        if "name" in fields and fields["name"] != rt.name:
            other = self.repo.find_reward_type_by_name(company_id, fields["name"])
            if other and other.id != rt.id:
                raise ConflictError(f"Reward type '{fields['name']}' already exists")
        with self.repo.atomic():
            for k, v in fields.items():
                setattr(rt, k, v)
        return rt

    def delete_type(self, company_id: int, type_id: int) -> None:
        rt = self.get_type(company_id, type_id)
        used = self.repo.count_records_for_type(company_id, type_id)
        if used:
            raise ConflictError(
                "Reward type has reward records and cannot be deleted; deactivate it instead",
                details={"records": used},
            )
        with self.repo.atomic():
            self.repo.delete(rt)
        log.info("reward type %s deleted for company %s", type_id, company_id)

    def toggle_type(self, company_id: int, type_id: int, is_active: Optional[bool] = None) -> RewardType:
        rt = self.get_type(company_id, type_id)
        if is_active is None:
            target = not rt.is_active
        else:
            target = _bool(is_active)
            if target is None:
                raise ValidationError("is_active must be true or false",
                                      [{"field": "is_active", "message": "must be true or false"}])
        with self.repo.atomic():
            rt.is_active = target
        return rt

    def seed_defaults(self, company_id: int, created_by: Optional[int] = None) -> List[str]:
        created = []
        with self.repo.atomic():
            for tpl in DEFAULT_REWARD_TYPES:
                if self.repo.find_reward_type_by_name(company_id, tpl["name"]):
                    continue
                fields = self._validate(tpl, partial=False)
                self.repo.add(RewardType(company_id=company_id, created_by=created_by, **fields))
                created.append(tpl["name"])
        log.info("seeded %d default reward types for company %s", len(created), company_id)
        return created

    # ---------- validation ----------

    def _validate(self, data: Dict[str, Any], partial: bool, existing: Optional[RewardType] = None) -> Dict[str, Any]:
        """
        Normalize an incoming payload into model fields.
        With partial=True only the keys present in `data` are returned.
        """
        errors = []
        out: Dict[str, Any] = {}

        def has(k):
            return (k in data) if partial else True

        if has("name"):
            name = (data.get("name") or "").strip()
            if not name:
                errors.append({"field": "name", "message": "name is required"})
            out["name"] = name
        if "description" in data:
            out["description"] = (data.get("description") or "").strip() or None

        for key, allowed, default in (
            ("category", REWARD_CATEGORIES, "OTHER"),
            ("calculation_method", CALCULATION_METHODS, "FIXED_AMOUNT"),
            ("trigger_type", TRIGGER_TYPES, "MANUAL"),
            ("frequency", FREQUENCIES, "MONTHLY"),
        ):
            if not has(key):
                continue
            raw = data.get(key)
            val = str(raw).strip().upper() if raw not in (None, "") else default
            if val not in allowed:
                errors.append({"field": key, "message": f"must be one of {', '.join(allowed)}"})
            out[key] = val

        if has("value"):
            v = _dec(data.get("value", 0) if not partial else data.get("value"))
            if v is None or v < 0:
                errors.append({"field": "value", "message": "value must be a number >= 0"})
            out["value"] = v
        if "max_cap" in data:
            cap = _dec(data.get("max_cap"))
            if data.get("max_cap") not in (None, "") and (cap is None or cap < 0):
                errors.append({"field": "max_cap", "message": "max_cap must be a number >= 0"})
            out["max_cap"] = cap

        method = out.get("calculation_method") or (existing.calculation_method if existing else None)
        value = out.get("value") if "value" in out else (existing.value if existing else None)
        if method in PERCENT_METHODS and value is not None and value > 100:
            errors.append({"field": "value", "message": "percentage must be <= 100"})

        if "eligibility_conditions" in data:
            try:
                conds = parse_conditions(data.get("eligibility_conditions"))
                out["eligibility_conditions"] = conds.to_dict() or None
            except ConditionsError as e:
                errors.extend([{"field": f"eligibility_conditions.{x['field']}", "message": x["message"]}
                               for x in e.errors] or [{"field": "eligibility_conditions", "message": str(e)}])

        if "is_active" in data:
            flag = _bool(data.get("is_active"))
            if flag is None:
                errors.append({"field": "is_active", "message": "must be true or false"})
            out["is_active"] = flag
        elif not partial:
            out["is_active"] = True
        if "priority" in data:
            try:
                out["priority"] = int(data.get("priority"))
            except (TypeError, ValueError):
                errors.append({"field": "priority", "message": "priority must be an integer"})

        for key in ("effective_from", "effective_to"):
            if key in data:
                raw = data.get(key)
                d = _d(raw)
                if raw not in (None, "") and d is None:
                    errors.append({"field": key, "message": "must be YYYY-MM-DD"})
                out[key] = d
        eff_from = out.get("effective_from", existing.effective_from if existing else None)
        eff_to = out.get("effective_to", existing.effective_to if existing else None)
        if eff_from and eff_to and eff_to < eff_from:
            errors.append({"field": "effective_to", "message": "effective_to must be >= effective_from"})

        if errors:
            raise ValidationError("Invalid reward type", errors)
        return out
