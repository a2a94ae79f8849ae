# rewards_api/services/reward_calculation.py
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Tuple

from rewards_api.common.errors import BusinessLogicError
from rewards_api.models.rewards import RewardType

TWOPLACES = Decimal("0.01")


def _q(x) -> Decimal:
    return Decimal(str(x or 0)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


class CalculationEngine:
    """
    value + breakdown for a reward type applied to one employee.

    FIXED_AMOUNT and POINTS take the type's value verbatim, NON_MONETARY is
    always zero, PERCENTAGE_SALARY works off the employee's base salary and
    honours max_cap. A missing salary yields 0 with an explanatory note
    instead of an error. Anything else is rejected.
    """

    def __init__(self, repo):
        self.repo = repo

    def calculate(self, company_id: int, employee_id: int, rt: RewardType) -> Tuple[Decimal, Dict[str, Any]]:
        method = rt.calculation_method
        breakdown: Dict[str, Any] = {"method": method}

        if method == "FIXED_AMOUNT":
            value = _q(rt.value)
            breakdown["amount"] = float(value)

        elif method == "POINTS":
            value = _q(rt.value)
            breakdown["points"] = float(value)
            breakdown["unit"] = "points"

        elif method == "NON_MONETARY":
            value = _q(0)
            breakdown["description"] = rt.description or rt.name
            breakdown["payroll_impact"] = False

        elif method == "PERCENTAGE_SALARY":
            value = self._percentage_salary(company_id, employee_id, rt, breakdown)

        elif method in ("PERCENTAGE_SALES", "PERCENTAGE_PROJECT_PROFIT"):
            raise BusinessLogicError(
                f"Calculation method {method} is not supported",
                details={"calculation_method": method},
            )

        else:
            raise BusinessLogicError(
                f"Unknown calculation method: {method}",
                details={"calculation_method": method},
            )

        breakdown["final_value"] = float(value)
        return value, breakdown

    def _percentage_salary(self, company_id, employee_id, rt, breakdown) -> Decimal:
        pct = Decimal(str(rt.value or 0))
        breakdown["percentage"] = float(pct)

        emp = self.repo.get_employee(company_id, employee_id)
        base = getattr(emp, "base_salary", None) if emp else None
        if base is None or Decimal(str(base)) <= 0:
            breakdown["base_salary"] = None
            breakdown["error"] = "base salary not defined"
            return _q(0)

        base = Decimal(str(base))
        raw = base * pct / Decimal("100")
        breakdown["base_salary"] = float(base)
        breakdown["uncapped_value"] = float(_q(raw))

        cap = Decimal(str(rt.max_cap)) if rt.max_cap is not None else Decimal("0")
        if cap > 0 and raw > cap:
            breakdown["is_capped"] = True
            breakdown["cap_value"] = float(_q(cap))
            return _q(cap)

        breakdown["is_capped"] = False
        return _q(raw)
