# rewards_api/services/reward_workflow.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
import logging
from typing import Any, Dict, Iterable, List, Optional

from rewards_api.common.errors import (
    ValidationError, NotFoundError, BusinessLogicError, ConflictError,
)
from rewards_api.models.rewards import RewardRecord, REWARD_CATEGORIES

log = logging.getLogger(__name__)

SYSTEM = "SYSTEM"

# allowed forward moves; APPLIED is written by the payroll export only
TRANSITIONS = {
    "PENDING": ("APPROVED", "REJECTED", "VOIDED"),
    "APPROVED": ("VOIDED",),
    "REJECTED": (),
    "VOIDED": (),
    "APPLIED": (),
}


def _d(s) -> Optional[date]:
    if not s: return None
    if isinstance(s, datetime): return s.date()
    if isinstance(s, date): return s
    try: return date.fromisoformat(str(s))
    except Exception: return None

def _dec(x) -> Optional[Decimal]:
    if x is None or x == "": return None
    try: return Decimal(str(x)).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError): return None

def _int(x) -> Optional[int]:
    try: return int(x) if x not in (None, "") else None
    except (TypeError, ValueError): return None


class ApplicationWorkflow:
    """
    Turns an (employee, reward type, period) into a RewardRecord and moves it
    through PENDING -> APPROVED | REJECTED, {PENDING, APPROVED} -> VOIDED.

    Approval locks the record; locked records keep their financial fields.
    Records included in payroll can never be voided or deleted.
    """

    def __init__(self, repo, evaluator, engine, clock=date.today):
        self.repo = repo
        self.evaluator = evaluator
        self.engine = engine
        self.clock = clock

    # ---------- apply ----------

    def apply(self, company_id: int, employee_id: int, reward_type_id: int,
              period_start: date, period_end: date, triggered_by,
              reason: Optional[str] = None, skip_eligibility_check: bool = False,
              auto_trigger_key: Optional[str] = None) -> RewardRecord:
        period_start, period_end = _d(period_start), _d(period_end)
        if period_start is None or period_end is None:
            raise ValidationError("period_start and period_end are required (YYYY-MM-DD)")
        if period_end < period_start:
            raise ValidationError("period_end must be >= period_start")

        rt = self.repo.get_reward_type(company_id, reward_type_id)
        if rt is None:
            raise NotFoundError("Reward type not found")
        if not rt.is_active:
            raise BusinessLogicError("Reward type is inactive", details={"reward_type_id": rt.id})
        if self.repo.get_employee(company_id, employee_id) is None:
            raise NotFoundError("Employee not found")

        if skip_eligibility_check:
            eligibility = {"skipped": True, "reason": "manual override"}
        else:
            verdict = self.evaluator.evaluate(company_id, employee_id, rt.id, period_start, period_end)
            if not verdict.eligible:
                raise BusinessLogicError(
                    f"Employee is not eligible: {verdict.reason}",
                    details=verdict.to_dict(),
                )
            eligibility = verdict.to_dict()

        with self.repo.atomic():
            value, breakdown = self.engine.calculate(company_id, employee_id, rt)

            settings = self.repo.get_settings(company_id)
            auto_approve = rt.trigger_type == "AUTOMATIC" or not settings.require_manager_approval
            status = "APPROVED" if auto_approve else "PENDING"
            now = datetime.utcnow()

            rec = RewardRecord(
                company_id=company_id,
                employee_id=employee_id,
                reward_type_id=rt.id,
                # snapshot: later edits to the type never touch this record
                reward_name=rt.name,
                reward_category=rt.category,
                calculated_value=value,
                calculation_details=breakdown,
                period_start=period_start,
                period_end=period_end,
                applied_month=period_end.month,
                applied_year=period_end.year,
                reason=reason,
                eligibility_met=eligibility,
                status=status,
                is_locked=(status == "APPROVED"),
                triggered_by=str(triggered_by) if triggered_by is not None else None,
                created_by=_int(triggered_by),
                auto_trigger_key=auto_trigger_key,
            )
            if status == "APPROVED":
                rec.approved_by = _int(triggered_by)
                rec.approved_at = now
            self.repo.add(rec)

        log.info("reward record %s applied: employee=%s type=%s value=%s status=%s",
                 rec.id, employee_id, rt.id, value, status)
        return rec

    def apply_bulk(self, company_id: int, employee_ids: Iterable[int], reward_type_id: int,
                   period_start: date, period_end: date, triggered_by,
                   reason: Optional[str] = None, skip_eligibility_check: bool = False) -> Dict[str, List]:
        applied, failed = [], []
        for emp_id in employee_ids:
            try:
                rec = self.apply(company_id, emp_id, reward_type_id, period_start, period_end,
                                 triggered_by, reason=reason, skip_eligibility_check=skip_eligibility_check)
                applied.append(rec)
            except Exception as e:
                self.repo.rollback()
                msg = getattr(e, "message", None) or str(e)
                log.warning("bulk apply failed for employee %s: %s", emp_id, msg)
                failed.append({"employee_id": emp_id, "reason": msg})
        log.info("bulk apply type=%s: %d applied, %d failed", reward_type_id, len(applied), len(failed))
        return {"applied": applied, "failed": failed}

    # ---------- transitions ----------

    def _load(self, company_id: int, record_id: int) -> RewardRecord:
        rec = self.repo.get_record(company_id, record_id)
        if rec is None:
            raise NotFoundError("Reward record not found")
        return rec

    def _ensure_transition(self, rec: RewardRecord, target: str):
        if target not in TRANSITIONS.get(rec.status, ()):
            raise BusinessLogicError(
                f"Cannot move reward from {rec.status} to {target}",
                details={"status": rec.status, "target": target},
            )

    def approve(self, company_id: int, record_id: int, approver_id) -> RewardRecord:
        rec = self._load(company_id, record_id)
        self._ensure_transition(rec, "APPROVED")
        with self.repo.atomic():
            rec.status = "APPROVED"
            rec.approved_by = _int(approver_id)
            rec.approved_at = datetime.utcnow()
            rec.is_locked = True
        log.info("reward record %s approved by %s", rec.id, approver_id)
        return rec

    def reject(self, company_id: int, record_id: int, rejecter_id, reason: Optional[str] = None) -> RewardRecord:
        rec = self._load(company_id, record_id)
        self._ensure_transition(rec, "REJECTED")
        with self.repo.atomic():
            rec.status = "REJECTED"
            rec.rejected_by = _int(rejecter_id)
            rec.rejected_at = datetime.utcnow()
            rec.rejection_reason = reason
        log.info("reward record %s rejected by %s", rec.id, rejecter_id)
        return rec

    def void(self, company_id: int, record_id: int, voider_id, reason: Optional[str] = None) -> RewardRecord:
        rec = self._load(company_id, record_id)
        if rec.is_included_in_payroll:
            raise ConflictError("Reward is included in payroll and cannot be voided",
                                details={"record_id": rec.id})
        self._ensure_transition(rec, "VOIDED")
        with self.repo.atomic():
            rec.status = "VOIDED"
            rec.voided_by = _int(voider_id)
            rec.voided_at = datetime.utcnow()
            rec.void_reason = reason
            rec.is_locked = True
        log.info("reward record %s voided by %s", rec.id, voider_id)
        return rec

    # ---------- manual management ----------

    def create_manual(self, company_id: int, data: Dict[str, Any], created_by) -> RewardRecord:
        errors = []
        emp_id = _int(data.get("employee_id"))
        type_raw = data.get("reward_type_id")
        p_start, p_end = _d(data.get("period_start")), _d(data.get("period_end"))
        if not emp_id:
            errors.append({"field": "employee_id", "message": "employee_id is required"})
        if type_raw in (None, ""):
            errors.append({"field": "reward_type_id", "message": "reward_type_id is required"})
        if not p_start:
            errors.append({"field": "period_start", "message": "period_start is required"})
        if not p_end:
            errors.append({"field": "period_end", "message": "period_end is required"})
        if p_start and p_end and p_end < p_start:
            errors.append({"field": "period_end", "message": "period_end must be >= period_start"})
        value = None
        if data.get("calculated_value") not in (None, ""):
            value = _dec(data.get("calculated_value"))
            if value is None or value < 0:
                errors.append({"field": "calculated_value", "message": "calculated_value must be >= 0"})
        if errors:
            raise ValidationError("Invalid reward data", errors)

        if self.repo.get_employee(company_id, emp_id) is None:
            raise NotFoundError("Employee not found")

        rt = None
        if str(type_raw).lower() != "custom":
            rt = self.repo.get_reward_type(company_id, _int(type_raw) or 0)
            if rt is None or not rt.is_active:
                raise NotFoundError("Reward type not found or inactive")
            name, category = rt.name, rt.category
        else:
            name = (data.get("reward_name") or "").strip()
            if not name:
                raise ValidationError("reward_name is required for a custom reward",
                                      [{"field": "reward_name", "message": "required"}])
            category = (data.get("reward_category") or "OTHER").strip().upper()
            if category not in REWARD_CATEGORIES:
                raise ValidationError("Invalid reward category",
                                      [{"field": "reward_category", "message": "unknown category"}])

        if value is None:
            value = _dec(rt.value) if rt is not None else Decimal("0.00")

        today = self.clock()
        with self.repo.atomic():
            rec = RewardRecord(
                company_id=company_id,
                employee_id=emp_id,
                reward_type_id=rt.id if rt else None,
                reward_name=name,
                reward_category=category,
                calculated_value=value,
                calculation_details=data.get("calculation_details") or {"method": "MANUAL", "final_value": float(value)},
                period_start=p_start,
                period_end=p_end,
                applied_month=_int(data.get("applied_month")) or today.month,
                applied_year=_int(data.get("applied_year")) or today.year,
                reason=data.get("reason") or None,
                eligibility_met=data.get("eligibility_met") or None,
                status="PENDING",
                is_locked=False,
                triggered_by=str(created_by) if created_by is not None else None,
                created_by=_int(created_by),
            )
            self.repo.add(rec)
        log.info("manual reward record %s created by %s", rec.id, created_by)
        return rec

    def update(self, company_id: int, record_id: int, data: Dict[str, Any]) -> RewardRecord:
        rec = self._load(company_id, record_id)
        if rec.is_locked:
            raise BusinessLogicError("Reward is locked and cannot be edited", details={"status": rec.status})
        if rec.status == "APPLIED":
            raise BusinessLogicError("Reward has been applied to payroll and cannot be edited")

        errors = []
        updates: Dict[str, Any] = {}
        if "calculated_value" in data:
            v = _dec(data.get("calculated_value"))
            if v is None or v < 0:
                errors.append({"field": "calculated_value", "message": "calculated_value must be >= 0"})
            updates["calculated_value"] = v
        if "reason" in data:
            updates["reason"] = data.get("reason") or None
        for key in ("period_start", "period_end"):
            if key in data:
                d = _d(data.get(key))
                if d is None:
                    errors.append({"field": key, "message": "must be YYYY-MM-DD"})
                updates[key] = d
        if "applied_month" in data:
            m = _int(data.get("applied_month"))
            if m is None or not 1 <= m <= 12:
                errors.append({"field": "applied_month", "message": "must be 1..12"})
            updates["applied_month"] = m
        if "applied_year" in data:
            y = _int(data.get("applied_year"))
            if y is None:
                errors.append({"field": "applied_year", "message": "must be an integer"})
            updates["applied_year"] = y

        start = updates.get("period_start", rec.period_start)
        end = updates.get("period_end", rec.period_end)
        if start and end and end < start:
            errors.append({"field": "period_end", "message": "period_end must be >= period_start"})
        if errors:
            raise ValidationError("Invalid reward update", errors)

        with self.repo.atomic():
            for k, v in updates.items():
                setattr(rec, k, v)
        return rec

    def delete(self, company_id: int, record_id: int) -> None:
        rec = self._load(company_id, record_id)
        if rec.is_included_in_payroll:
            raise ConflictError("Reward is included in payroll and cannot be deleted",
                                details={"record_id": rec.id})
        if rec.status == "APPLIED":
            raise BusinessLogicError("Reward has been applied; void it instead of deleting")
        if rec.is_locked:
            raise BusinessLogicError("Reward is locked; void it instead of deleting",
                                     details={"status": rec.status})
        with self.repo.atomic():
            self.repo.delete(rec)
        log.info("reward record %s deleted", record_id)
