from __future__ import annotations

import random

from lume_fairness.analytics.schemas import CustomerProfile, Decision, DecisionFactor

# (location, age, digital literacy) of the demo population.
DEMO_PROFILES: tuple[tuple[str, int, str], ...] = (
    ("urban", 35, "high"),
    ("urban", 42, "high"),
    ("urban", 28, "medium"),
    ("semi-urban", 38, "medium"),
    ("rural", 68, "low"),
    ("rural", 65, "low"),
    ("rural", 45, "medium"),
    ("urban", 22, "high"),
    ("rural", 72, "low"),
)


def demo_bias_score(location: str, age: int, digital_literacy: str) -> int:
    """
    Rejection pressure applied to a demo profile, in percentage points.
    """
    score = 15 if location == "rural" else 0
    if age >= 60:
        score += 15
    elif age < 25:
        score += 10
    if digital_literacy == "low":
        score += 10
    return score


def generate_mock_decisions(
    rng: random.Random,
    *,
    timestamp: int = 0,
    profiles: tuple[tuple[str, int, str], ...] = DEMO_PROFILES,
) -> list[Decision]:
    """
    Build a demo decision corpus with a built-in bias against rural, elderly
    and low-literacy customers.

    All randomness comes from `rng`, so a seeded `random.Random` pins the
    outcome of every decision.
    """
    decisions: list[Decision] = []
    for index, (location, age, literacy) in enumerate(profiles):
        approved = rng.random() * 100 > demo_bias_score(location, age, literacy)
        factors = (
            DecisionFactor(
                technical_name="credit_score",
                value="720" if approved else "620",
                weight=0.35,
                threshold="650",
                passed=approved,
            ),
            DecisionFactor(
                technical_name="debt_to_income_ratio",
                value="0.35" if approved else "0.55",
                weight=0.25,
                threshold="0.40",
                passed=approved,
            ),
            DecisionFactor(
                technical_name="employment_tenure",
                value="24" if approved else "6",
                weight=0.20,
                threshold="12",
                passed=approved or age >= 60,
            ),
            DecisionFactor(
                technical_name="digital_footprint",
                value="high" if approved else "low",
                weight=0.20,
                threshold="medium",
                passed=approved or literacy == "high",
            ),
        )
        decisions.append(
            Decision(
                customer_id=f"CUST_{index}",
                decision_type="LOAN_APPLICATION",
                timestamp=timestamp,
                factors=factors,
                customer_profile=CustomerProfile(
                    age=age, location_type=location, digital_literacy=literacy, language="en"
                ),
            )
        )
    return decisions


def _factors(*rows: tuple[str, str, float, str, bool]) -> tuple[DecisionFactor, ...]:
    return tuple(
        DecisionFactor(technical_name=name, value=value, weight=weight, threshold=threshold, passed=passed)
        for name, value, weight, threshold, passed in rows
    )


def demo_scenarios(timestamp: int = 0) -> list[tuple[str, Decision]]:
    """
    Four fixed bank decisions covering a biased denial, a fraud block, a limit
    reduction and a clean approval.
    """
    loan_denial = Decision(
        customer_id="CUST_12345",
        decision_type="LOAN_DENIAL",
        timestamp=timestamp,
        factors=_factors(
            ("credit_score", "620", 0.35, "650", False),
            ("debt_to_income_ratio", "0.55", 0.25, "0.40", False),
            ("employment_tenure", "3_months", 0.20, "12_months", False),
            ("existing_relationship", "2_years", 0.10, "1_year", True),
            ("digital_footprint", "low", 0.10, "medium", False),
        ),
        customer_profile=CustomerProfile(age=68, location_type="rural", digital_literacy="low", language="hi"),
    )
    transaction_block = Decision(
        customer_id="CUST_67890",
        decision_type="TRANSACTION_BLOCKED",
        timestamp=timestamp,
        factors=_factors(
            ("transaction_amount", "INR 2,50,000", 0.30, "INR 1,00,000", False),
            ("international_transaction", "true", 0.25, "false", False),
            ("unusual_merchant", "first_time", 0.20, "known", False),
            ("time_of_transaction", "3:00 AM", 0.15, "business_hours", False),
            ("device_match", "new_device", 0.10, "known_device", False),
        ),
        customer_profile=CustomerProfile(age=42, location_type="urban", digital_literacy="high", language="en"),
    )
    limit_reduction = Decision(
        customer_id="CUST_45678",
        decision_type="CREDIT_LIMIT_REDUCED",
        timestamp=timestamp,
        factors=_factors(
            ("utilization_rate", "95%", 0.35, "70%", False),
            ("payment_history", "2_late_payments", 0.30, "0_late_payments", False),
            ("credit_inquiries", "8", 0.20, "3", False),
            ("income_verification", "not_updated", 0.15, "current", False),
        ),
        customer_profile=CustomerProfile(age=35, location_type="urban", digital_literacy="medium", language="en"),
    )
    loan_approval = Decision(
        customer_id="CUST_99999",
        decision_type="LOAN_APPROVED",
        timestamp=timestamp,
        factors=_factors(
            ("credit_score", "780", 0.35, "650", True),
            ("debt_to_income_ratio", "0.25", 0.25, "0.40", True),
            ("employment_tenure", "5_years", 0.20, "12_months", True),
            ("existing_relationship", "10_years", 0.10, "1_year", True),
            ("digital_footprint", "high", 0.10, "medium", True),
        ),
        customer_profile=CustomerProfile(age=32, location_type="urban", digital_literacy="high", language="en"),
    )
    return [
        ("Loan Denial (Rural, Elderly)", loan_denial),
        ("Transaction Blocked (Fraud)", transaction_block),
        ("Credit Limit Reduced", limit_reduction),
        ("Loan Approved (Good Profile)", loan_approval),
    ]
