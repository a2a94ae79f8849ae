import pytest

from rewards_api.services.reward_conditions import parse_conditions, ConditionsError


def test_empty_document_means_no_conditions():
    assert parse_conditions(None).is_empty()
    assert parse_conditions({}).is_empty()
    assert parse_conditions("").is_empty()


def test_tagged_document_parses_every_section():
    c = parse_conditions({
        "tenure": {"min_service_days": 90},
        "attendance": {"no_lateness": True, "max_late_minutes": 30, "min_attendance_rate": 95},
        "performance": {"min_performance_score": 4, "min_goals_achievement": 80},
        "streak": {"min_streak": 20, "count": "attended"},
    })
    assert c.tenure.min_service_days == 90
    assert c.attendance.no_lateness is True
    assert c.attendance.no_absences is False
    assert c.attendance.max_late_minutes == 30
    assert c.performance.min_performance_score == 4.0
    assert c.streak.min_streak == 20
    assert c.streak.count == "attended"


def test_legacy_flat_keys_are_folded_into_sections():
    c = parse_conditions('{"minServiceDays": 30, "noAbsences": true, "minStreak": 10}')
    assert c.tenure.min_service_days == 30
    assert c.attendance.no_absences is True
    assert c.streak.min_streak == 10
    assert c.to_dict() == {
        "tenure": {"min_service_days": 30},
        "attendance": {"no_absences": True},
        "streak": {"min_streak": 10, "count": "present"},
    }


@pytest.mark.parametrize("doc", [
    {"noLateness": True, "attendance": {"max_late_minutes": 30}},
    {"attendance": {"max_late_minutes": 30}, "noLateness": True},
])
def test_legacy_and_tagged_keys_merge_in_any_order(doc):
    c = parse_conditions(doc)
    assert c.attendance.no_lateness is True
    assert c.attendance.max_late_minutes == 30


def test_tagged_value_wins_over_legacy_duplicate():
    c = parse_conditions({"maxLateMinutes": 90, "attendance": {"max_late_minutes": 30}})
    assert c.attendance.max_late_minutes == 30


def test_module_documents_condition_shape():
    from rewards_api.services import reward_conditions
    assert reward_conditions.__doc__ and "tagged" in reward_conditions.__doc__


def test_zero_threshold_survives_round_trip_to_dict():
    c = parse_conditions({"attendance": {"max_late_minutes": 0}})
    assert c.to_dict() == {"attendance": {"max_late_minutes": 0}}


def test_invalid_documents_collect_all_errors():
    with pytest.raises(ConditionsError) as ei:
        parse_conditions({
            "tenure": {"min_service_days": -1},
            "attendance": {"min_attendance_rate": 120, "no_lateness": "yes"},
            "bonus": {},
        })
    fields = {e["field"] for e in ei.value.errors}
    assert fields == {"tenure.min_service_days", "attendance.min_attendance_rate",
                      "attendance.no_lateness", "bonus"}


def test_malformed_json_string_is_rejected():
    with pytest.raises(ConditionsError):
        parse_conditions("{not json")
    with pytest.raises(ConditionsError):
        parse_conditions([1, 2])
