# rewards_api/services/reward_engine.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable

from rewards_api.extensions import db
from rewards_api.services.reward_repository import RewardRepository
from rewards_api.services.reward_catalog import RewardTypeCatalog
from rewards_api.services.reward_eligibility import EligibilityEvaluator
from rewards_api.services.reward_calculation import CalculationEngine
from rewards_api.services.reward_workflow import ApplicationWorkflow
from rewards_api.services.reward_streaks import AttendanceStreakCalculator, StreakTrigger
from rewards_api.services.reward_reporting import ReportingAggregator


@dataclass
class RewardEngine:
    repo: RewardRepository
    catalog: RewardTypeCatalog
    evaluator: EligibilityEvaluator
    engine: CalculationEngine
    workflow: ApplicationWorkflow
    streaks: StreakTrigger
    reports: ReportingAggregator


def build_engine(session=None, clock: Callable[[], date] = date.today) -> RewardEngine:
    """Wire the reward components around one session (default: db.session)."""
    repo = RewardRepository(session if session is not None else db.session)
    evaluator = EligibilityEvaluator(repo, clock=clock)
    engine = CalculationEngine(repo)
    workflow = ApplicationWorkflow(repo, evaluator, engine, clock=clock)
    calculator = AttendanceStreakCalculator(repo, clock=clock)
    return RewardEngine(
        repo=repo,
        catalog=RewardTypeCatalog(repo),
        evaluator=evaluator,
        engine=engine,
        workflow=workflow,
        streaks=StreakTrigger(repo, workflow, calculator, clock=clock),
        reports=ReportingAggregator(repo),
    )
