from __future__ import annotations
from datetime import date
from typing import Any, Dict, Optional

from flask import Blueprint, request, current_app

from rewards_api.common.auth import requires_perms, current_company_id, current_user_id
from rewards_api.common.errors import ValidationError
from rewards_api.common.http import ok
from rewards_api.common.paging import page_limit, sort_params, text_q
from rewards_api.models.rewards import RewardRecord
from rewards_api.services.reward_engine import build_engine
from rewards_api.services.reward_reporting import SORTABLE

bp = Blueprint("reward_records", __name__, url_prefix="/api/v1/rewards")


# ---------- helpers ----------
def _d(s) -> Optional[date]:
    if not s: return None
    try: return date.fromisoformat(str(s))
    except Exception: return None

def _req_date(j: Dict[str, Any], key: str) -> date:
    d = _d(j.get(key))
    if d is None:
        raise ValidationError(f"{key} is required (YYYY-MM-DD)", [{"field": key, "message": "required"}])
    return d

def _req_int(j: Dict[str, Any], key: str) -> int:
    try:
        return int(j.get(key))
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an integer", [{"field": key, "message": "must be an integer"}])

def _flt(x):
    try: return float(x) if x is not None else None
    except Exception: return None

def _iso(x):
    return x.isoformat() if x else None

def record_row(r: RewardRecord) -> Dict[str, Any]:
    emp = r.employee
    return {
        "id": r.id,
        "employee_id": r.employee_id,
        "employee_name": emp.full_name if emp else None,
        "employee_code": emp.code if emp else None,
        "reward_type_id": r.reward_type_id,
        "reward_name": r.reward_name,
        "reward_category": r.reward_category,
        "calculated_value": _flt(r.calculated_value),
        "calculation_details": r.calculation_details,
        "period_start": _iso(r.period_start),
        "period_end": _iso(r.period_end),
        "applied_month": r.applied_month,
        "applied_year": r.applied_year,
        "reason": r.reason,
        "eligibility_met": r.eligibility_met,
        "status": r.status,
        "is_locked": r.is_locked,
        "is_included_in_payroll": r.is_included_in_payroll,
        "triggered_by": r.triggered_by,
        "approved_by": r.approved_by,
        "approved_at": _iso(r.approved_at),
        "rejected_by": r.rejected_by,
        "rejected_at": _iso(r.rejected_at),
        "rejection_reason": r.rejection_reason,
        "voided_by": r.voided_by,
        "voided_at": _iso(r.voided_at),
        "void_reason": r.void_reason,
        "created_at": _iso(r.created_at),
    }


# ---------- list / get ----------
@bp.get("/records")
@requires_perms("rewards.records.read")
def list_records():
    a = request.args
    filters = {
        "employee_id": a.get("employee_id", type=int),
        "reward_type_id": a.get("reward_type_id", type=int),
        "category": (a.get("category") or "").strip().upper() or None,
        "status": (a.get("status") or "").strip().upper() or None,
        "month": a.get("month", type=int),
        "year": a.get("year", type=int),
        "start_date": _d(a.get("start_date")),
        "end_date": _d(a.get("end_date")),
        "search": text_q(),
    }
    payroll = a.get("is_included_in_payroll")
    if payroll not in (None, ""):
        filters["is_included_in_payroll"] = payroll.strip().lower() == "true"

    page, limit = page_limit()
    sort_by, sort_order = sort_params(SORTABLE)
    out = build_engine().reports.list_records(current_company_id(), filters, page, limit, sort_by, sort_order)
    return ok([record_row(r) for r in out["items"]], pagination=out["pagination"])

@bp.get("/records/<int:record_id>")
@requires_perms("rewards.records.read")
def get_record(record_id: int):
    return ok(record_row(build_engine().reports.get_record(current_company_id(), record_id)))


# ---------- manual CRUD ----------
@bp.post("/records")
@requires_perms("rewards.records.write")
def create_record():
    j = request.get_json(silent=True) or {}
    r = build_engine().workflow.create_manual(current_company_id(), j, created_by=current_user_id())
    return ok(record_row(r), status=201)

@bp.put("/records/<int:record_id>")
@requires_perms("rewards.records.write")
def update_record(record_id: int):
    j = request.get_json(silent=True) or {}
    r = build_engine().workflow.update(current_company_id(), record_id, j)
    return ok(record_row(r))

@bp.delete("/records/<int:record_id>")
@requires_perms("rewards.records.write")
def delete_record(record_id: int):
    build_engine().workflow.delete(current_company_id(), record_id)
    return ok({"deleted": record_id})


# ---------- apply ----------
@bp.post("/records/apply")
@requires_perms("rewards.records.write")
def apply_reward():
    """
    Body:
    {
      "employee_id": 12, "reward_type_id": 3,
      "period_start": "YYYY-MM-DD", "period_end": "YYYY-MM-DD",
      "reason": "optional", "skip_eligibility_check": false
    }
    """
    j = request.get_json(silent=True) or {}
    r = build_engine().workflow.apply(
        current_company_id(),
        _req_int(j, "employee_id"),
        _req_int(j, "reward_type_id"),
        _req_date(j, "period_start"),
        _req_date(j, "period_end"),
        current_user_id(),
        reason=(j.get("reason") or "").strip() or None,
        skip_eligibility_check=bool(j.get("skip_eligibility_check")),
    )
    return ok(record_row(r), status=201)

@bp.post("/records/apply-bulk")
@requires_perms("rewards.records.write")
def apply_bulk():
    j = request.get_json(silent=True) or {}
    ids = j.get("employee_ids")
    if not isinstance(ids, list) or not ids:
        raise ValidationError("employee_ids must be a non-empty list",
                              [{"field": "employee_ids", "message": "required"}])
    try:
        ids = [int(x) for x in ids]
    except (TypeError, ValueError):
        raise ValidationError("employee_ids must be integers",
                              [{"field": "employee_ids", "message": "must be integers"}])
    out = build_engine().workflow.apply_bulk(
        current_company_id(),
        ids,
        _req_int(j, "reward_type_id"),
        _req_date(j, "period_start"),
        _req_date(j, "period_end"),
        current_user_id(),
        reason=(j.get("reason") or "").strip() or None,
        skip_eligibility_check=bool(j.get("skip_eligibility_check")),
    )
    current_app.logger.info("bulk apply by user %s: %d applied, %d failed",
                            current_user_id(), len(out["applied"]), len(out["failed"]))
    return ok({
        "applied": [record_row(r) for r in out["applied"]],
        "failed": out["failed"],
        "summary": {"applied": len(out["applied"]), "failed": len(out["failed"])},
    })


# ---------- transitions ----------
@bp.post("/records/<int:record_id>/approve")
@requires_perms("rewards.records.approve")
def approve_record(record_id: int):
    r = build_engine().workflow.approve(current_company_id(), record_id, current_user_id())
    return ok(record_row(r))

@bp.post("/records/<int:record_id>/reject")
@requires_perms("rewards.records.approve")
def reject_record(record_id: int):
    j = request.get_json(silent=True) or {}
    r = build_engine().workflow.reject(current_company_id(), record_id, current_user_id(),
                                       (j.get("reason") or "").strip() or None)
    return ok(record_row(r))

@bp.post("/records/<int:record_id>/void")
@requires_perms("rewards.records.approve")
def void_record(record_id: int):
    j = request.get_json(silent=True) or {}
    r = build_engine().workflow.void(current_company_id(), record_id, current_user_id(),
                                     (j.get("reason") or "").strip() or None)
    return ok(record_row(r))


# ---------- eligibility ----------
@bp.post("/eligibility/check")
@requires_perms("rewards.records.read")
def check_eligibility():
    j = request.get_json(silent=True) or {}
    v = build_engine().evaluator.evaluate(
        current_company_id(),
        _req_int(j, "employee_id"),
        _req_int(j, "reward_type_id"),
        _req_date(j, "period_start"),
        _req_date(j, "period_end"),
    )
    return ok(v.to_dict())

@bp.post("/eligibility/check-all")
@requires_perms("rewards.records.read")
def check_eligibility_all():
    j = request.get_json(silent=True) or {}
    rows = build_engine().evaluator.evaluate_all_active(
        current_company_id(),
        _req_int(j, "reward_type_id"),
        _req_date(j, "period_start"),
        _req_date(j, "period_end"),
    )
    return ok([{"employee_id": x["employee_id"], **x["verdict"].to_dict()} for x in rows], total=len(rows))
