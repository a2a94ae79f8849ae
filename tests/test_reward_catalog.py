from decimal import Decimal

import pytest

from rewards_api.common.errors import ConflictError, NotFoundError, ValidationError
from rewards_api.services.reward_catalog import DEFAULT_REWARD_TYPES


def _payload(**kw):
    data = {
        "name": "Spot Award",
        "category": "initiative",
        "calculation_method": "FIXED_AMOUNT",
        "value": "150",
        "trigger_type": "MANUAL",
        "frequency": "ONE_TIME",
    }
    data.update(kw)
    return data


def test_create_normalizes_fields(engine, company):
    rt = engine.catalog.create_type(company.id, _payload(
        eligibility_conditions={"minServiceDays": 30}), created_by=1)
    assert rt.id is not None
    assert rt.category == "INITIATIVE"
    assert rt.value == Decimal("150")
    assert rt.is_active is True
    assert rt.eligibility_conditions == {"tenure": {"min_service_days": 30}}


def test_create_rejects_bad_payload(engine, company):
    with pytest.raises(ValidationError) as ei:
        engine.catalog.create_type(company.id, _payload(
            name="", category="BOGUS", value="-1",
            eligibility_conditions={"attendance": {"min_attendance_rate": 101}}))
    fields = {e["field"] for e in ei.value.errors}
    assert {"name", "category", "value", "eligibility_conditions.attendance.min_attendance_rate"} <= fields


def test_percentage_above_hundred_is_rejected(engine, company):
    with pytest.raises(ValidationError):
        engine.catalog.create_type(company.id, _payload(calculation_method="PERCENTAGE_SALARY", value="150"))


def test_effective_window_must_be_ordered(engine, company):
    with pytest.raises(ValidationError):
        engine.catalog.create_type(company.id, _payload(effective_from="2024-03-01", effective_to="2024-02-01"))


def test_duplicate_name_conflicts(engine, company):
    engine.catalog.create_type(company.id, _payload())
    with pytest.raises(ConflictError):
        engine.catalog.create_type(company.id, _payload())


def test_partial_update_keeps_other_fields(engine, company):
    rt = engine.catalog.create_type(company.id, _payload())
    rt = engine.catalog.update_type(company.id, rt.id, {"value": "175.50"})
    assert rt.value == Decimal("175.50")
    assert rt.name == "Spot Award"
    assert rt.frequency == "ONE_TIME"


def test_update_cannot_raise_existing_percentage_above_hundred(engine, company):
    rt = engine.catalog.create_type(company.id, _payload(calculation_method="PERCENTAGE_SALARY", value="10"))
    with pytest.raises(ValidationError):
        engine.catalog.update_type(company.id, rt.id, {"value": "250"})


def test_referenced_type_cannot_be_deleted_but_can_be_deactivated(engine, make, company):
    rt = engine.catalog.create_type(company.id, _payload())
    emp = make.employee()
    make.record(emp, reward_type=rt)

    with pytest.raises(ConflictError) as ei:
        engine.catalog.delete_type(company.id, rt.id)
    assert ei.value.details == {"records": 1}

    rt = engine.catalog.toggle_type(company.id, rt.id)
    assert rt.is_active is False
    rt = engine.catalog.toggle_type(company.id, rt.id, is_active=True)
    assert rt.is_active is True


@pytest.mark.parametrize("flag,expected", [("false", False), ("0", False), ("no", False),
                                           ("true", True), ("1", True), (False, False), (True, True)])
def test_toggle_parses_explicit_flags(engine, company, flag, expected):
    rt = engine.catalog.create_type(company.id, _payload(is_active=not expected))
    rt = engine.catalog.toggle_type(company.id, rt.id, flag)
    assert rt.is_active is expected


def test_toggle_rejects_unrecognized_flag(engine, company):
    rt = engine.catalog.create_type(company.id, _payload())
    with pytest.raises(ValidationError):
        engine.catalog.toggle_type(company.id, rt.id, "maybe")
    assert engine.catalog.get_type(company.id, rt.id).is_active is True


def test_string_false_deactivates_on_create_and_update(engine, company):
    rt = engine.catalog.create_type(company.id, _payload(is_active="false"))
    assert rt.is_active is False
    rt = engine.catalog.update_type(company.id, rt.id, {"is_active": "1"})
    assert rt.is_active is True
    with pytest.raises(ValidationError):
        engine.catalog.update_type(company.id, rt.id, {"is_active": "sometimes"})


def test_unused_type_is_deleted(engine, company):
    rt = engine.catalog.create_type(company.id, _payload())
    rt_id = rt.id
    engine.catalog.delete_type(company.id, rt_id)
    with pytest.raises(NotFoundError):
        engine.catalog.get_type(company.id, rt_id)


def test_list_filters_and_orders_by_priority(engine, company):
    engine.catalog.create_type(company.id, _payload(name="B", priority=20))
    engine.catalog.create_type(company.id, _payload(name="A", priority=20))
    engine.catalog.create_type(company.id, _payload(name="C", priority=5, is_active=False))
    assert [t.name for t in engine.catalog.list_types(company.id)] == ["C", "A", "B"]
    assert [t.name for t in engine.catalog.list_types(company.id, is_active=True)] == ["A", "B"]


def test_seed_defaults_is_idempotent(engine, company):
    created = engine.catalog.seed_defaults(company.id)
    assert created == [t["name"] for t in DEFAULT_REWARD_TYPES]
    assert engine.catalog.seed_defaults(company.id) == []
    assert len(engine.catalog.list_types(company.id)) == len(DEFAULT_REWARD_TYPES)


def test_types_are_tenant_scoped(engine, company, session):
    from rewards_api.models.master import Company
    other = Company(code="OTHER", name="Other Co")
    session.add(other); session.commit()

    rt = engine.catalog.create_type(company.id, _payload())
    with pytest.raises(NotFoundError):
        engine.catalog.get_type(other.id, rt.id)
    # same name is fine in another tenant
    engine.catalog.create_type(other.id, _payload())
