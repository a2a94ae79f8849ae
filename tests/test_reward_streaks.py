from datetime import date, datetime, timedelta
from decimal import Decimal

from rewards_api.models.rewards import RewardRecord

TODAY = date(2024, 2, 15)  # Thursday


def _work_days_back(n, start=TODAY):
    out, d = [], start
    while len(out) < n:
        if d.weekday() < 5:
            out.append(d)
        d -= timedelta(days=1)
    return out


def _streak_type(make, min_streak=5, count="present", **kw):
    return make.reward_type(category="ATTENDANCE", trigger_type="AUTOMATIC",
                            calculation_method="POINTS", value=Decimal("100"),
                            eligibility_conditions={"streak": {"min_streak": min_streak, "count": count}}, **kw)


def test_streak_steps_over_weekends(engine, make, company):
    emp = make.employee()
    for d in _work_days_back(9):
        make.attendance(emp, d)
    make.attendance(emp, date(2024, 2, 2), status="ABSENT")

    calc = engine.streaks.calculator
    assert calc.current_streak(company.id, emp.id) == 9


def test_unmarked_today_does_not_break_streak(engine, make, company):
    emp = make.employee()
    for d in (date(2024, 2, 14), date(2024, 2, 13), date(2024, 2, 12)):
        make.attendance(emp, d)
    assert engine.streaks.calculator.current_streak(company.id, emp.id) == 3


def test_missing_work_day_breaks_streak(engine, make, company):
    emp = make.employee()
    make.attendance(emp, date(2024, 2, 15))
    make.attendance(emp, date(2024, 2, 14))
    make.attendance(emp, date(2024, 2, 12))
    assert engine.streaks.calculator.current_streak(company.id, emp.id) == 2


def test_count_mode_decides_whether_late_days_qualify(engine, make, company):
    emp = make.employee()
    make.attendance(emp, date(2024, 2, 15))
    make.attendance(emp, date(2024, 2, 14), status="LATE", late_minutes=10)
    make.attendance(emp, date(2024, 2, 13))
    calc = engine.streaks.calculator
    assert calc.current_streak(company.id, emp.id, "present") == 1
    assert calc.current_streak(company.id, emp.id, "attended") == 3


def test_tenant_work_days_are_respected(engine, make, company):
    make.settings(work_days="0,1,2,3,4,5")
    emp = make.employee()
    for d in _work_days_back(6):
        make.attendance(emp, d)
    # Saturday 2024-02-10 is a work day for this tenant and has no row
    assert engine.streaks.calculator.current_streak(company.id, emp.id) == 4


def test_no_history_is_zero(engine, make, company):
    emp = make.employee()
    assert engine.streaks.calculator.current_streak(company.id, emp.id) == 0


def test_check_and_apply_is_idempotent(engine, make, company, session):
    emp = make.employee()
    rt = _streak_type(make, min_streak=5)
    for d in _work_days_back(6):
        make.attendance(emp, d)

    first = engine.streaks.check_and_apply(company.id, emp.id)
    second = engine.streaks.check_and_apply(company.id, emp.id)

    assert first["streak"] == 6
    assert len(first["applied"]) == 1
    assert second["applied"] == []
    assert second["skipped"][0]["reward_type_id"] == rt.id

    recs = session.query(RewardRecord).filter_by(employee_id=emp.id).all()
    assert len(recs) == 1
    rec = recs[0]
    assert rec.status == "APPROVED"
    assert rec.triggered_by == "SYSTEM"
    assert rec.period_end == TODAY
    assert rec.period_start == TODAY - timedelta(days=6)
    assert rec.auto_trigger_key == f"{rt.id}:{emp.id}:{rec.period_start.isoformat()}"


def test_earlier_reward_outside_lookback_does_not_suppress(engine, make, company, session):
    emp = make.employee()
    rt = _streak_type(make, min_streak=5)
    make.record(emp, rt, status="APPROVED", created_at=datetime(2024, 1, 20, 12, 0))  # 26 days back
    for d in _work_days_back(6):
        make.attendance(emp, d)

    out = engine.streaks.check_and_apply(company.id, emp.id)

    assert len(out["applied"]) == 1
    assert session.query(RewardRecord).filter_by(employee_id=emp.id).count() == 2


def test_earlier_reward_inside_lookback_suppresses(engine, make, company, session):
    emp = make.employee()
    rt = _streak_type(make, min_streak=5)
    make.record(emp, rt, status="APPROVED", created_at=datetime(2024, 1, 22, 12, 0))  # 24 days back
    for d in _work_days_back(6):
        make.attendance(emp, d)

    out = engine.streaks.check_and_apply(company.id, emp.id)

    assert out["applied"] == []
    assert out["skipped"] == [{"reward_type_id": rt.id, "reason": "already rewarded recently"}]
    assert session.query(RewardRecord).filter_by(employee_id=emp.id).count() == 1


def test_trigger_key_collision_is_reported_as_duplicate(engine, make, company, session):
    emp = make.employee()
    rt = _streak_type(make, min_streak=5)
    for d in _work_days_back(6):
        make.attendance(emp, d)
    period_start = TODAY - timedelta(days=6)
    # old enough to slip past the lookback, same key as the run below
    make.record(emp, rt, status="APPROVED", created_at=datetime(2023, 12, 1, 12, 0),
                auto_trigger_key=f"{rt.id}:{emp.id}:{period_start.isoformat()}")

    out = engine.streaks.check_and_apply(company.id, emp.id)

    assert out["applied"] == []
    assert out["failed"] == []
    assert out["skipped"] == [{"reward_type_id": rt.id, "reason": "duplicate automatic reward"}]
    assert session.query(RewardRecord).filter_by(employee_id=emp.id).count() == 1


def test_below_threshold_applies_nothing(engine, make, company):
    emp = make.employee()
    _streak_type(make, min_streak=20)
    for d in _work_days_back(5):
        make.attendance(emp, d)
    out = engine.streaks.check_and_apply(company.id, emp.id)
    assert out["streak"] == 5
    assert out["applied"] == []


def test_manual_and_inactive_types_are_ignored(engine, make, company):
    emp = make.employee()
    _streak_type(make, min_streak=2, is_active=False)
    make.reward_type(category="ATTENDANCE", trigger_type="MANUAL",
                     eligibility_conditions={"streak": {"min_streak": 2}})
    for d in _work_days_back(5):
        make.attendance(emp, d)
    out = engine.streaks.check_and_apply(company.id, emp.id)
    assert out == {"employee_id": emp.id, "streak": 0, "applied": [], "skipped": [], "failed": []}


def test_process_all_employees(engine, make, company):
    _streak_type(make, min_streak=3)
    good = make.employee()
    short = make.employee()
    make.employee(status="inactive")
    for d in _work_days_back(4):
        make.attendance(good, d)
    make.attendance(short, TODAY)

    out = engine.streaks.process_all_employees(company.id)
    assert out["processed"] == 2
    assert out["rewards_applied"] == 1
    assert [r["employee_id"] for r in out["results"]] == [good.id]
    assert out["errors"] == []
