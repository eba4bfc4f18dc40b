from __future__ import annotations

from typing import Any, Callable

import pytest

from lume_fairness.analytics.schemas import ApplicationData, CustomerProfile, Decision, DecisionFactor


def _factors(specs: dict[str, bool]) -> tuple[DecisionFactor, ...]:
    return tuple(
        DecisionFactor(technical_name=name, value="x", weight=0.2, threshold="y", passed=passed)
        for name, passed in specs.items()
    )


@pytest.fixture
def make_decision() -> Callable[..., Decision]:
    """
    Factory for decisions: `make_decision(age=68, location="rural", factors={"credit_score": False})`.
    """

    def _make(
        *,
        decision_type: str = "LOAN_DENIAL",
        age: int = 40,
        location: str = "urban",
        literacy: str = "high",
        factors: dict[str, bool] | None = None,
        customer_id: str = "CUST_1",
        timestamp: int = 1_700_000_000_000,
    ) -> Decision:
        return Decision(
            customer_id=customer_id,
            decision_type=decision_type,
            timestamp=timestamp,
            factors=_factors(factors if factors is not None else {"credit_score": True}),
            customer_profile=CustomerProfile(age=age, location_type=location, digital_literacy=literacy),
        )

    return _make


@pytest.fixture
def make_corpus(make_decision: Callable[..., Decision]) -> Callable[..., list[Decision]]:
    """
    Build `total` decisions for one profile, of which `approved` pass every factor.
    """

    def _make(total: int, approved: int, **profile: Any) -> list[Decision]:
        return [
            make_decision(
                decision_type="LOAN_APPLICATION",
                factors={"credit_score": i < approved, "employment_tenure": True},
                **profile,
            )
            for i in range(total)
        ]

    return _make


@pytest.fixture
def make_application() -> Callable[..., ApplicationData]:
    """
    Factory for a clean, established applicant; keyword overrides tweak single fields.
    """

    def _make(**overrides: Any) -> ApplicationData:
        base: dict[str, Any] = {
            "credit_file_age_months": 60,
            "number_of_credit_accounts": 5,
            "age": 35,
        }
        base.update(overrides)
        return ApplicationData(**base)

    return _make
