import os
from datetime import date
from decimal import Decimal

import pytest

from rewards_api import create_app
from rewards_api.extensions import db
from rewards_api.models.attendance import AttendanceDay
from rewards_api.models.employee import Employee
from rewards_api.models.master import Company, Department
from rewards_api.models.performance import PerformanceReview
from rewards_api.models.rewards import RewardType, RewardRecord, RewardSettings
from rewards_api.services.reward_engine import build_engine

# A Thursday; every engine in the tests runs against this date.
TODAY = date(2024, 2, 15)


@pytest.fixture(scope="function")
def app():
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    app = create_app()
    app.config["TESTING"] = True
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope="function")
def session(app):
    return db.session


@pytest.fixture
def company(session):
    c = Company(code="ACME", name="Acme Ltd")
    session.add(c); session.commit()
    return c


@pytest.fixture
def engine(app):
    return build_engine(clock=lambda: TODAY)


class Factory:
    def __init__(self, session, company):
        self.session = session
        self.company = company
        self._n = 0

    def department(self, name="Engineering"):
        d = Department(company_id=self.company.id, name=name)
        self.session.add(d); self.session.commit()
        return d

    def employee(self, code="auto", salary=None, doj=date(2023, 1, 1), department=None, status="active"):
        self._n += 1
        if code == "auto":
            code = f"E{self._n:03d}"
        e = Employee(
            company_id=self.company.id,
            department_id=department.id if department else None,
            code=code,
            email=f"emp{self._n}@acme.test",
            first_name="Emp",
            last_name=str(self._n),
            doj=doj,
            base_salary=Decimal(str(salary)) if salary is not None else None,
            status=status,
        )
        self.session.add(e); self.session.commit()
        return e

    def reward_type(self, **kw):
        self._n += 1
        fields = dict(
            company_id=self.company.id,
            name=f"Reward {self._n}",
            category="OTHER",
            calculation_method="FIXED_AMOUNT",
            value=Decimal("100"),
            trigger_type="MANUAL",
            frequency="MONTHLY",
            is_active=True,
        )
        fields.update(kw)
        rt = RewardType(**fields)
        self.session.add(rt); self.session.commit()
        return rt

    def attendance(self, employee, day, status="PRESENT", late_minutes=0):
        row = AttendanceDay(company_id=self.company.id, employee_id=employee.id, date=day,
                            status=status, late_minutes=late_minutes)
        self.session.add(row); self.session.commit()
        return row

    def review(self, employee, start, end, rating, goals):
        r = PerformanceReview(company_id=self.company.id, employee_id=employee.id,
                              period_start=start, period_end=end,
                              overall_rating=Decimal(str(rating)), goals_achievement=Decimal(str(goals)))
        self.session.add(r); self.session.commit()
        return r

    def settings(self, require_manager_approval=True, work_days="0,1,2,3,4"):
        s = RewardSettings(company_id=self.company.id, require_manager_approval=require_manager_approval,
                           work_days=work_days)
        self.session.add(s); self.session.commit()
        return s

    def record(self, employee, reward_type=None, status="PENDING", value="100", **kw):
        fields = dict(
            company_id=self.company.id,
            employee_id=employee.id,
            reward_type_id=reward_type.id if reward_type else None,
            reward_name=reward_type.name if reward_type else "Custom",
            reward_category=reward_type.category if reward_type else "OTHER",
            calculated_value=Decimal(value),
            period_start=date(2024, 1, 1),
            period_end=date(2024, 1, 31),
            applied_month=1,
            applied_year=2024,
            status=status,
            is_locked=status != "PENDING",
        )
        fields.update(kw)
        r = RewardRecord(**fields)
        self.session.add(r); self.session.commit()
        return r


@pytest.fixture
def make(session, company):
    return Factory(session, company)
