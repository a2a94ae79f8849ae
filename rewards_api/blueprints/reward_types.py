from __future__ import annotations
from typing import Any, Dict

from flask import Blueprint, request

from rewards_api.common.auth import requires_perms, current_company_id, current_user_id
from rewards_api.common.http import ok
from rewards_api.models.rewards import RewardType
from rewards_api.services.reward_engine import build_engine

bp = Blueprint("reward_types", __name__, url_prefix="/api/v1/rewards/types")


def _flt(x):
    try: return float(x) if x is not None else None
    except Exception: return None

def _bool_arg(name):
    v = request.args.get(name)
    if v is None or v == "":
        return None
    return v.strip().lower() in ("1", "true", "yes")

def type_row(t: RewardType) -> Dict[str, Any]:
    return {
        "id": t.id,
        "company_id": t.company_id,
        "name": t.name,
        "description": t.description,
        "category": t.category,
        "calculation_method": t.calculation_method,
        "value": _flt(t.value),
        "max_cap": _flt(t.max_cap),
        "eligibility_conditions": t.eligibility_conditions or {},
        "trigger_type": t.trigger_type,
        "frequency": t.frequency,
        "is_active": t.is_active,
        "priority": t.priority,
        "effective_from": t.effective_from.isoformat() if t.effective_from else None,
        "effective_to": t.effective_to.isoformat() if t.effective_to else None,
        "created_at": t.created_at.isoformat() if t.created_at else None,
    }


@bp.get("")
@requires_perms("rewards.types.read")
def list_types():
    items = build_engine().catalog.list_types(
        current_company_id(),
        is_active=_bool_arg("is_active"),
        category=(request.args.get("category") or "").strip().upper() or None,
        trigger_type=(request.args.get("trigger_type") or "").strip().upper() or None,
    )
    return ok([type_row(t) for t in items], total=len(items))

@bp.get("/<int:type_id>")
@requires_perms("rewards.types.read")
def get_type(type_id: int):
    return ok(type_row(build_engine().catalog.get_type(current_company_id(), type_id)))

@bp.post("")
@requires_perms("rewards.types.manage")
def create_type():
    j = request.get_json(silent=True) or {}
    t = build_engine().catalog.create_type(current_company_id(), j, created_by=current_user_id())
    return ok(type_row(t), status=201)

@bp.put("/<int:type_id>")
@requires_perms("rewards.types.manage")
def update_type(type_id: int):
    j = request.get_json(silent=True) or {}
    t = build_engine().catalog.update_type(current_company_id(), type_id, j)
    return ok(type_row(t))

@bp.patch("/<int:type_id>/toggle")
@requires_perms("rewards.types.manage")
def toggle_type(type_id: int):
    j = request.get_json(silent=True) or {}
    is_active = j.get("is_active") if "is_active" in j else None
    t = build_engine().catalog.toggle_type(current_company_id(), type_id, is_active)
    return ok(type_row(t))

@bp.delete("/<int:type_id>")
@requires_perms("rewards.types.manage")
def delete_type(type_id: int):
    build_engine().catalog.delete_type(current_company_id(), type_id)
    return ok({"deleted": type_id})

@bp.post("/seed-defaults")
@requires_perms("rewards.types.manage")
def seed_defaults():
    created = build_engine().catalog.seed_defaults(current_company_id(), created_by=current_user_id())
    return ok({"created": created, "count": len(created)}, status=201 if created else 200)
