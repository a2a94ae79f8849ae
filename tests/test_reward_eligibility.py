from datetime import date

import pytest

from rewards_api.common.errors import NotFoundError
from rewards_api.models.rewards import EligibilityEvaluationLog

JAN_START, JAN_END = date(2024, 1, 1), date(2024, 1, 31)


def test_no_conditions_is_eligible_and_logged(engine, make, company):
    emp = make.employee()
    rt = make.reward_type()
    v = engine.evaluator.evaluate(company.id, emp.id, rt.id, JAN_START, JAN_END)
    assert v.eligible is True
    assert engine.repo.count_evaluation_logs(company.id, employee_id=emp.id, reward_type_id=rt.id) == 1


def test_late_minutes_over_maximum(engine, make, company):
    emp = make.employee()
    rt = make.reward_type(eligibility_conditions={"attendance": {"max_late_minutes": 30}})
    for d, mins in ((date(2024, 1, 8), 15), (date(2024, 1, 9), 20), (date(2024, 1, 10), 10)):
        make.attendance(emp, d, status="LATE", late_minutes=mins)
    make.attendance(emp, date(2024, 1, 11))

    v = engine.evaluator.evaluate(company.id, emp.id, rt.id, JAN_START, JAN_END)
    assert v.eligible is False
    assert "45" in v.reason and "30" in v.reason
    assert v.evidence["attendance"]["total_late_minutes"] == 45
    assert v.evidence["attendance"]["late_days"] == 3


def test_attendance_rate_counts_half_days_as_attended(engine, make, company):
    emp = make.employee()
    rt = make.reward_type(eligibility_conditions={"attendance": {"min_attendance_rate": 75}})
    make.attendance(emp, date(2024, 1, 8))
    make.attendance(emp, date(2024, 1, 9), status="HALF_DAY")
    make.attendance(emp, date(2024, 1, 10), status="LATE", late_minutes=5)
    make.attendance(emp, date(2024, 1, 11), status="ABSENT")

    v = engine.evaluator.evaluate(company.id, emp.id, rt.id, JAN_START, JAN_END)
    assert v.eligible is True
    assert v.evidence["attendance"]["attendance_rate"] == 75.0


def test_no_attendance_rows_means_zero_rate(engine, make, company):
    emp = make.employee()
    rt = make.reward_type(eligibility_conditions={"attendance": {"min_attendance_rate": 90}})
    v = engine.evaluator.evaluate(company.id, emp.id, rt.id, JAN_START, JAN_END)
    assert v.eligible is False
    assert v.evidence["attendance"]["attendance_rate"] == 0.0


def test_absences_fail_no_absence_rule(engine, make, company):
    emp = make.employee()
    rt = make.reward_type(eligibility_conditions={"attendance": {"no_absences": True, "no_lateness": True}})
    make.attendance(emp, date(2024, 1, 8), status="ABSENT")
    make.attendance(emp, date(2024, 1, 9), status="LATE", late_minutes=3)
    v = engine.evaluator.evaluate(company.id, emp.id, rt.id, JAN_START, JAN_END)
    assert v.eligible is False
    assert "late on 1 days" in v.reason
    assert "absent on 1 days" in v.reason


def test_zero_reviews_is_ineligible(engine, make, company):
    emp = make.employee()
    rt = make.reward_type(eligibility_conditions={"performance": {"min_performance_score": 3}})
    v = engine.evaluator.evaluate(company.id, emp.id, rt.id, JAN_START, JAN_END)
    assert v.eligible is False
    assert v.reason == "no performance reviews in period"


def test_reviews_are_averaged(engine, make, company):
    emp = make.employee()
    rt = make.reward_type(eligibility_conditions={"performance": {"min_performance_score": 4,
                                                                  "min_goals_achievement": 80}})
    make.review(emp, date(2024, 1, 1), date(2024, 1, 15), 4.5, 90)
    make.review(emp, date(2024, 1, 16), date(2024, 1, 31), 3.7, 80)
    # outside the period, ignored
    make.review(emp, date(2023, 12, 1), date(2023, 12, 31), 1, 10)

    v = engine.evaluator.evaluate(company.id, emp.id, rt.id, JAN_START, JAN_END)
    assert v.eligible is True
    assert v.evidence["performance"]["review_count"] == 2
    assert v.evidence["performance"]["average_rating"] == 4.1


def test_tenure_measured_against_clock(engine, make, company):
    rt = make.reward_type(eligibility_conditions={"tenure": {"min_service_days": 90}})
    junior = make.employee(doj=date(2024, 1, 1))
    senior = make.employee(doj=date(2023, 1, 1))
    no_doj = make.employee(doj=None)

    v = engine.evaluator.evaluate(company.id, junior.id, rt.id, JAN_START, JAN_END)
    assert v.eligible is False
    assert v.evidence["tenure"] == {"required_days": 90, "service_days": 45}

    assert engine.evaluator.evaluate(company.id, senior.id, rt.id, JAN_START, JAN_END).eligible is True

    v = engine.evaluator.evaluate(company.id, no_doj.id, rt.id, JAN_START, JAN_END)
    assert v.eligible is False
    assert v.reason == "hire date not defined"


def test_inactive_type_is_never_eligible(engine, make, company):
    emp = make.employee()
    rt = make.reward_type(is_active=False)
    v = engine.evaluator.evaluate(company.id, emp.id, rt.id, JAN_START, JAN_END)
    assert v.eligible is False
    assert v.reason == "reward type is inactive"


def test_corrupt_stored_conditions_are_ineligible(engine, make, company):
    emp = make.employee()
    rt = make.reward_type(eligibility_conditions={"attendance": {"min_attendance_rate": 300}})
    v = engine.evaluator.evaluate(company.id, emp.id, rt.id, JAN_START, JAN_END)
    assert v.eligible is False
    assert v.reason == "invalid conditions"


def test_effective_window(engine, make, company):
    emp = make.employee()
    rt = make.reward_type(effective_from=date(2024, 2, 1))
    v = engine.evaluator.evaluate(company.id, emp.id, rt.id, JAN_START, JAN_END)
    assert v.eligible is False


def test_unknown_type_raises(engine, make, company):
    emp = make.employee()
    with pytest.raises(NotFoundError):
        engine.evaluator.evaluate(company.id, emp.id, 9999, JAN_START, JAN_END)


def test_every_evaluation_leaves_a_log_row(engine, make, company, session):
    emp = make.employee()
    rt = make.reward_type(eligibility_conditions={"performance": {"min_performance_score": 3}})
    engine.evaluator.evaluate(company.id, emp.id, rt.id, JAN_START, JAN_END)
    engine.evaluator.evaluate(company.id, emp.id, rt.id, JAN_START, JAN_END)
    rows = session.query(EligibilityEvaluationLog).filter_by(employee_id=emp.id).all()
    assert len(rows) == 2
    assert all(r.is_eligible is False for r in rows)
    assert rows[0].conditions_checked == {"performance": {"min_performance_score": 3}}


def test_evaluate_all_active_returns_only_eligible(engine, make, company):
    rt = make.reward_type(eligibility_conditions={"tenure": {"min_service_days": 90}})
    senior = make.employee(doj=date(2022, 5, 1))
    make.employee(doj=date(2024, 2, 1))
    make.employee(doj=date(2022, 5, 1), status="inactive")
    make.employee(code=None, doj=date(2022, 5, 1))

    out = engine.evaluator.evaluate_all_active(company.id, rt.id, JAN_START, JAN_END)
    assert [x["employee_id"] for x in out] == [senior.id]
    assert out[0]["verdict"].eligible is True
