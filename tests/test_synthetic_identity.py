from __future__ import annotations

import pytest

from lume_fairness.analytics.schemas import LegitimacyDetermination, RiskFactor, RiskLevel
from lume_fairness.analytics.synthetic_identity import (
    NOT_LEGITIMATE,
    SyntheticIdentityRiskEngine,
    build_recommendation,
    evaluate_address_verification,
    evaluate_application_velocity,
    evaluate_credit_activity,
    evaluate_credit_file_age,
    evaluate_employment_verification,
    evaluate_identity_verification,
    risk_level_for,
)

WORST_CASE = {
    "credit_file_age_months": 3,
    "number_of_credit_accounts": 1,
    "recent_accounts_opened": 6,
    "requested_loan_amount": 700_000,
    "pan_verified": False,
    "aadhaar_verified": False,
    "address_matches": False,
    "loan_applications_last_30_days": 5,
    "address_age_months": 1,
    "address_type": "PO_BOX",
    "employment_verified": False,
    "salary_verified": False,
}


@pytest.fixture
def engine() -> SyntheticIdentityRiskEngine:
    return SyntheticIdentityRiskEngine()


def test_clean_application_is_low_risk(engine, make_application):
    result = engine.analyze_application("CUST_1", make_application())

    assert result.risk_score == 0
    assert result.risk_level is RiskLevel.LOW
    assert all(f.risk_level is RiskLevel.SAFE for f in result.risk_factors)
    assert len(result.risk_factors) == 6
    assert result.suspicious_factors == ()


def test_rapid_buildup_with_large_loan_is_critical(engine, make_application):
    data = make_application(
        credit_file_age_months=3,
        number_of_credit_accounts=1,
        recent_accounts_opened=6,
        requested_loan_amount=700_000,
        employment_verified=False,
        salary_verified=False,
    )

    result = engine.analyze_application("CUST_B", data)
    activity = next(f for f in result.risk_factors if f.name == "Credit Activity")

    assert activity.risk_level is RiskLevel.CRITICAL
    assert activity.score_contribution == 40.0
    assert "INR 700,000" in activity.value
    assert result.risk_level is RiskLevel.CRITICAL
    assert result.legitimacy.is_legitimate is False
    assert result.recommendation.startswith("Recommended Action: DENY")


def test_student_thin_file_is_legitimate(engine, make_application):
    data = make_application(age=20, is_student=True, credit_file_age_months=2, number_of_credit_accounts=1)

    result = engine.analyze_application("CUST_C", data)

    assert result.risk_score > 0
    assert result.legitimacy.is_legitimate is True
    assert "thin credit file" in result.legitimacy.reason
    assert len(result.path_to_approval) == 3
    assert result.recommendation.startswith("Recommended Action: APPROVE with alternate verification")


def test_student_rule_wins_over_rural_rule(make_application):
    data = make_application(age=20, is_student=True, is_rural_customer=True, has_digital_footprint=False)

    legitimacy = SyntheticIdentityRiskEngine.check_for_legitimate_customer(data)

    assert legitimacy.is_legitimate is True
    assert legitimacy.reason == "Young adult/student with naturally thin credit file"


@pytest.mark.parametrize(
    "overrides, reason_fragment",
    [
        ({"is_recent_immigrant": True, "credit_file_age_months": 6}, "Recent immigrant"),
        (
            {"has_verifiable_income_source": True, "credit_file_age_months": 3, "number_of_credit_accounts": 1},
            "First-time formal credit user",
        ),
        ({"is_homemaker": True, "has_co_applicant": True}, "Homemaker with co-applicant"),
        ({"is_rural_customer": True, "has_digital_footprint": False}, "Rural customer"),
    ],
)
def test_legitimacy_scenarios(make_application, overrides, reason_fragment):
    legitimacy = SyntheticIdentityRiskEngine.check_for_legitimate_customer(make_application(**overrides))

    assert legitimacy.is_legitimate is True
    assert reason_fragment in legitimacy.reason
    assert len(legitimacy.mitigation_steps) == 3


@pytest.mark.parametrize(
    "overrides",
    [
        {"age": 26, "is_student": True},
        {"is_recent_immigrant": True, "credit_file_age_months": 12},
        {"is_homemaker": True},
        {"is_rural_customer": True},
    ],
)
def test_near_misses_are_not_legitimate(make_application, overrides):
    legitimacy = SyntheticIdentityRiskEngine.check_for_legitimate_customer(make_application(**overrides))
    assert legitimacy == NOT_LEGITIMATE


@pytest.mark.parametrize(
    "overrides, level, legitimate, recommendation",
    [
        (WORST_CASE, RiskLevel.CRITICAL, False, "Recommended Action: DENY"),
        (
            {**WORST_CASE, "age": 21, "is_student": True},
            RiskLevel.CRITICAL,
            True,
            "Recommended Action: APPROVE with alternate",
        ),
        ({}, RiskLevel.LOW, False, "Recommended Action: APPROVE\n"),
        (
            {"is_homemaker": True, "has_co_applicant": True},
            RiskLevel.LOW,
            True,
            "Recommended Action: APPROVE with alternate",
        ),
    ],
    ids=["high-risk-not-legitimate", "high-risk-legitimate", "low-risk-not-legitimate", "low-risk-legitimate"],
)
def test_risk_and_legitimacy_are_orthogonal(engine, make_application, overrides, level, legitimate, recommendation):
    result = engine.analyze_application("CUST_X", make_application(**overrides))

    assert result.risk_level is level
    assert result.legitimacy.is_legitimate is legitimate
    assert result.recommendation.startswith(recommendation)
    if legitimate:
        assert result.path_to_approval[0].title == result.legitimacy.mitigation_steps[0]
    else:
        assert [s.title for s in result.path_to_approval] == ["Not Available"]


def test_score_is_clamped_to_one_hundred(engine, make_application):
    result = engine.analyze_application("CUST_X", make_application(**WORST_CASE))

    assert sum(f.score_contribution for f in result.risk_factors) > 100
    assert result.risk_score == 100


@pytest.mark.parametrize(
    "overrides",
    [
        {},
        WORST_CASE,
        {"credit_file_age_months": 0, "number_of_credit_accounts": 0},
        {"loan_applications_last_30_days": 2, "salary_verified": False, "address_age_months": 4},
        {"credit_utilization": 99, "credit_file_age_months": 5, "pan_verified": False},
    ],
)
def test_score_stays_within_bounds(engine, make_application, overrides):
    result = engine.analyze_application("CUST_X", make_application(**overrides))
    assert 0 <= result.risk_score <= 100


def test_path_to_approval_timeframes(engine, make_application):
    result = engine.analyze_application("CUST_X", make_application(is_homemaker=True, has_co_applicant=True))
    steps = result.path_to_approval

    assert [s.step_number for s in steps] == [1, 2, 3]
    assert [s.timeframe for s in steps] == ["1-2 days", "3-5 days", "1 week"]
    assert [s.difficulty for s in steps] == ["Easy", "Medium", "Medium"]


@pytest.mark.parametrize(
    "level, prefix",
    [
        (RiskLevel.CRITICAL, "Recommended Action: DENY"),
        (RiskLevel.HIGH, "Recommended Action: MANUAL REVIEW"),
        (RiskLevel.MEDIUM, "Recommended Action: ENHANCED VERIFICATION"),
        (RiskLevel.LOW, "Recommended Action: APPROVE"),
        (RiskLevel.SAFE, "Recommended Action: APPROVE"),
    ],
)
def test_recommendation_for_non_legitimate_follows_level(level, prefix):
    assert build_recommendation(level, NOT_LEGITIMATE).startswith(prefix)


def test_legitimate_recommendation_numbers_steps():
    legitimacy = LegitimacyDetermination(is_legitimate=True, reason="r", mitigation_steps=("first", "second"))
    text = build_recommendation(RiskLevel.CRITICAL, legitimacy)

    assert "1. first" in text
    assert "2. second" in text


def test_explanation_lists_suspicious_factors(engine, make_application):
    flagged = engine.analyze_application("CUST_X", make_application(loan_applications_last_30_days=4))
    legit = engine.analyze_application(
        "CUST_Y", make_application(age=19, is_student=True, credit_file_age_months=1, number_of_credit_accounts=0)
    )

    assert "synthetic identity fraud" in flagged.explanation
    assert "- Application Velocity:" in flagged.explanation
    assert "Reason: Young adult/student" in legit.explanation
    assert "- Credit File Age:" in legit.explanation


def _check(evaluator, data, level, points, suspicious):
    factor = evaluator(data)
    assert factor.risk_level is level
    assert factor.score_contribution == points
    assert factor.is_suspicious is suspicious


@pytest.mark.parametrize(
    "months, accounts, level, points, suspicious",
    [
        (3, 1, RiskLevel.HIGH, 35.0, True),
        (3, 2, RiskLevel.MEDIUM, 20.0, True),
        (11, 2, RiskLevel.MEDIUM, 20.0, True),
        (20, 3, RiskLevel.LOW, 10.0, False),
        (20, 4, RiskLevel.SAFE, 0.0, False),
        (24, 1, RiskLevel.SAFE, 0.0, False),
    ],
)
def test_credit_file_age_tiers(make_application, months, accounts, level, points, suspicious):
    data = make_application(credit_file_age_months=months, number_of_credit_accounts=accounts)
    _check(evaluate_credit_file_age, data, level, points, suspicious)


@pytest.mark.parametrize(
    "overrides, level, points, suspicious",
    [
        (
            {"recent_accounts_opened": 5, "credit_file_age_months": 11, "requested_loan_amount": 500_001},
            RiskLevel.CRITICAL,
            40.0,
            True,
        ),
        (
            {"recent_accounts_opened": 5, "credit_file_age_months": 11, "requested_loan_amount": 500_000},
            RiskLevel.HIGH,
            25.0,
            True,
        ),
        ({"recent_accounts_opened": 5, "credit_file_age_months": 12}, RiskLevel.SAFE, 0.0, False),
        ({"credit_utilization": 91, "credit_file_age_months": 5}, RiskLevel.MEDIUM, 15.0, True),
        ({"credit_utilization": 90, "credit_file_age_months": 5}, RiskLevel.SAFE, 0.0, False),
    ],
)
def test_credit_activity_tiers(make_application, overrides, level, points, suspicious):
    _check(evaluate_credit_activity, make_application(**overrides), level, points, suspicious)


@pytest.mark.parametrize(
    "overrides, level, points, suspicious",
    [
        ({"pan_verified": False, "aadhaar_verified": False, "address_matches": False}, RiskLevel.CRITICAL, 50.0, True),
        ({"pan_verified": False, "aadhaar_verified": False}, RiskLevel.HIGH, 30.0, True),
        ({"address_matches": False}, RiskLevel.MEDIUM, 15.0, False),
        ({}, RiskLevel.SAFE, 0.0, False),
    ],
)
def test_identity_verification_tiers(make_application, overrides, level, points, suspicious):
    _check(evaluate_identity_verification, make_application(**overrides), level, points, suspicious)


@pytest.mark.parametrize(
    "applications, level, points, suspicious",
    [
        (7, RiskLevel.CRITICAL, 35.0, True),
        (5, RiskLevel.CRITICAL, 35.0, True),
        (3, RiskLevel.HIGH, 20.0, True),
        (2, RiskLevel.LOW, 5.0, False),
        (1, RiskLevel.SAFE, 0.0, False),
        (0, RiskLevel.SAFE, 0.0, False),
    ],
)
def test_application_velocity_tiers(make_application, applications, level, points, suspicious):
    data = make_application(loan_applications_last_30_days=applications)
    _check(evaluate_application_velocity, data, level, points, suspicious)


@pytest.mark.parametrize(
    "overrides, level, points, suspicious",
    [
        ({"address_age_months": 2, "address_type": "PO_BOX"}, RiskLevel.HIGH, 25.0, True),
        ({"address_age_months": 2, "address_type": "po_box"}, RiskLevel.HIGH, 25.0, True),
        ({"address_age_months": 2, "address_type": "HOME"}, RiskLevel.MEDIUM, 10.0, False),
        ({"address_age_months": 4, "address_type": "PO_BOX"}, RiskLevel.MEDIUM, 10.0, False),
        ({"address_matches": False}, RiskLevel.MEDIUM, 15.0, True),
        ({}, RiskLevel.SAFE, 0.0, False),
    ],
)
def test_address_verification_tiers(make_application, overrides, level, points, suspicious):
    _check(evaluate_address_verification, make_application(**overrides), level, points, suspicious)


@pytest.mark.parametrize(
    "overrides, level, points, suspicious",
    [
        ({"employment_verified": False, "salary_verified": False}, RiskLevel.HIGH, 30.0, True),
        ({"employment_tenure_months": 2, "salary_verified": False}, RiskLevel.MEDIUM, 15.0, False),
        ({"employment_tenure_months": 2}, RiskLevel.MEDIUM, 15.0, False),
        ({"salary_verified": False}, RiskLevel.MEDIUM, 10.0, False),
        ({"employment_verified": False}, RiskLevel.SAFE, 0.0, False),
    ],
)
def test_employment_verification_tiers(make_application, overrides, level, points, suspicious):
    _check(evaluate_employment_verification, make_application(**overrides), level, points, suspicious)


def _factor(level: RiskLevel, points: float = 0.0) -> RiskFactor:
    return RiskFactor(
        name="f", value="v", risk_level=level, score_contribution=points, explanation="e", is_suspicious=False
    )


@pytest.mark.parametrize(
    "total, levels, expected",
    [
        (0, [RiskLevel.CRITICAL, RiskLevel.CRITICAL], RiskLevel.CRITICAL),
        (80, [], RiskLevel.CRITICAL),
        (0, [RiskLevel.CRITICAL], RiskLevel.HIGH),
        (60, [], RiskLevel.HIGH),
        (0, [RiskLevel.HIGH, RiskLevel.HIGH], RiskLevel.MEDIUM),
        (40, [RiskLevel.HIGH], RiskLevel.MEDIUM),
        (39, [RiskLevel.HIGH], RiskLevel.LOW),
    ],
)
def test_risk_level_ladder(total, levels, expected):
    assert risk_level_for(total, [_factor(lv) for lv in levels]) is expected


def test_custom_evaluators_are_used(make_application):
    engine = SyntheticIdentityRiskEngine(evaluators=(evaluate_application_velocity,))
    result = engine.analyze_application("CUST_X", make_application(loan_applications_last_30_days=3))

    assert [f.name for f in result.risk_factors] == ["Application Velocity"]
    assert result.risk_score == 20


def test_analysis_is_idempotent(engine, make_application):
    data = make_application(**WORST_CASE)
    assert engine.analyze_application("CUST_X", data) == engine.analyze_application("CUST_X", data)


def test_implausible_age_is_scored_not_rejected(engine, make_application):
    result = engine.analyze_application("CUST_X", make_application(age=150))

    assert result.risk_level is RiskLevel.LOW
    assert result.legitimacy == NOT_LEGITIMATE
