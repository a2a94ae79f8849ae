from __future__ import annotations
from datetime import date

from flask import Blueprint, request, current_app

from rewards_api.common.auth import requires_perms, current_company_id, current_user_id
from rewards_api.common.errors import ValidationError
from rewards_api.common.http import ok
from rewards_api.services.reward_engine import build_engine
from rewards_api.blueprints.reward_records import record_row

bp = Blueprint("reward_reports", __name__, url_prefix="/api/v1/rewards")


def _d(s):
    if not s: return None
    try: return date.fromisoformat(str(s))
    except Exception:
        raise ValidationError(f"Invalid date '{s}', expected YYYY-MM-DD")


@bp.get("/reports/statistics")
@requires_perms("rewards.reports.read")
def statistics():
    a = request.args
    data = build_engine().reports.statistics(
        current_company_id(),
        month=a.get("month", type=int),
        year=a.get("year", type=int),
        start_date=_d(a.get("start_date")),
        end_date=_d(a.get("end_date")),
    )
    return ok(data)

@bp.get("/reports/monthly")
@requires_perms("rewards.reports.read")
def monthly_report():
    today = date.today()
    month = request.args.get("month", type=int) or today.month
    year = request.args.get("year", type=int) or today.year
    return ok(build_engine().reports.monthly_report(current_company_id(), month, year))

@bp.get("/reports/cost-analysis")
@requires_perms("rewards.reports.read")
def cost_analysis():
    a = request.args
    start = _d(a.get("start_date"))
    end = _d(a.get("end_date"))
    if start is None or end is None:
        today = date.today()
        start = start or date(today.year, 1, 1)
        end = end or today
    return ok(build_engine().reports.cost_analysis(current_company_id(), start, end))

@bp.get("/reports/employees/<int:employee_id>/history")
@requires_perms("rewards.reports.read")
def employee_history(employee_id: int):
    a = request.args
    out = build_engine().reports.employee_history(
        current_company_id(),
        employee_id,
        year=a.get("year", type=int),
        category=(a.get("category") or "").strip().upper() or None,
        status=(a.get("status") or "").strip().upper() or None,
    )
    return ok({
        "employee": out["employee"],
        "records": [record_row(r) for r in out["records"]],
        "summary": out["summary"],
    })


# ---------- automation ----------
@bp.post("/automation/streaks/run")
@requires_perms("rewards.automation.run")
def run_streaks():
    out = build_engine().streaks.process_all_employees(current_company_id())
    current_app.logger.info("streak run triggered by user %s: %s rewards",
                            current_user_id(), out["rewards_applied"])
    return ok(out)

@bp.post("/automation/streaks/<int:employee_id>")
@requires_perms("rewards.automation.run")
def run_streak_for_employee(employee_id: int):
    return ok(build_engine().streaks.check_and_apply(current_company_id(), employee_id))
