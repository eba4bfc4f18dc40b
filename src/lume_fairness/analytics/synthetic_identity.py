from __future__ import annotations

import logging
from typing import Callable, Sequence

from lume_fairness.analytics.schemas import (
    ApplicationData,
    ApprovalStep,
    LegitimacyDetermination,
    RiskAnalysisResult,
    RiskFactor,
    RiskLevel,
)

logger = logging.getLogger("lume.synthetic_identity")

LARGE_LOAN_AMOUNT = 500_000

Evaluator = Callable[[ApplicationData], RiskFactor]


def _factor(
    name: str, value: str, level: RiskLevel, points: float, explanation: str, suspicious: bool
) -> RiskFactor:
    return RiskFactor(
        name=name,
        value=value,
        risk_level=level,
        score_contribution=points,
        explanation=explanation,
        is_suspicious=suspicious,
    )


# --- Factor evaluators ----------------------------------------------------------
#
# Each evaluator is a pure function of the application. Tiers are checked top
# down and the first matching tier wins.


def evaluate_credit_file_age(data: ApplicationData) -> RiskFactor:
    name = "Credit File Age"
    months, accounts = data.credit_file_age_months, data.number_of_credit_accounts
    if months < 6 and accounts <= 1:
        return _factor(
            name,
            f"New file ({months} months, {accounts} account)",
            RiskLevel.HIGH,
            35.0,
            "Credit file recently created with minimal history",
            True,
        )
    if months < 12 and accounts <= 2:
        return _factor(
            name,
            f"Thin file ({months} months, {accounts} accounts)",
            RiskLevel.MEDIUM,
            20.0,
            "Limited credit history",
            True,
        )
    if months < 24 and accounts <= 3:
        return _factor(
            name,
            f"Young file ({months} months, {accounts} accounts)",
            RiskLevel.LOW,
            10.0,
            "Building credit history",
            False,
        )
    return _factor(
        name,
        f"Established file ({months} months, {accounts} accounts)",
        RiskLevel.SAFE,
        0.0,
        "Sufficient credit history",
        False,
    )


def evaluate_credit_activity(data: ApplicationData) -> RiskFactor:
    name = "Credit Activity"
    rapid_buildup = data.recent_accounts_opened >= 5 and data.credit_file_age_months < 12
    if rapid_buildup and data.requested_loan_amount > LARGE_LOAN_AMOUNT:
        return _factor(
            name,
            f"{data.recent_accounts_opened} accounts opened in {data.credit_file_age_months} months, "
            f"requesting INR {data.requested_loan_amount:,}",
            RiskLevel.CRITICAL,
            40.0,
            "Rapid credit buildup followed by large loan request (classic synthetic identity pattern)",
            True,
        )
    if rapid_buildup:
        return _factor(
            name,
            f"{data.recent_accounts_opened} accounts opened recently",
            RiskLevel.HIGH,
            25.0,
            "Multiple accounts opened in short timeframe",
            True,
        )
    if data.credit_utilization > 90 and data.credit_file_age_months < 6:
        return _factor(
            name,
            f"{data.credit_utilization}% utilization on new file",
            RiskLevel.MEDIUM,
            15.0,
            "High credit utilization on new credit file",
            True,
        )
    return _factor(
        name, "Normal credit patterns", RiskLevel.SAFE, 0.0, "Credit behavior within normal parameters", False
    )


def evaluate_identity_verification(data: ApplicationData) -> RiskFactor:
    name = "Identity Verification"
    mismatches = sum(1 for ok in (data.pan_verified, data.aadhaar_verified, data.address_matches) if not ok)
    if mismatches >= 3:
        return _factor(
            name,
            "Multiple document mismatches",
            RiskLevel.CRITICAL,
            50.0,
            "PAN, Aadhaar, and address verification all failed",
            True,
        )
    if mismatches == 2:
        return _factor(
            name,
            "Some documents don't match",
            RiskLevel.HIGH,
            30.0,
            "Two identity documents failed verification",
            True,
        )
    if mismatches == 1:
        return _factor(
            name,
            "Minor verification issue",
            RiskLevel.MEDIUM,
            15.0,
            "One document failed verification (may be data entry error)",
            False,
        )
    return _factor(name, "All documents verified", RiskLevel.SAFE, 0.0, "Identity successfully verified", False)


def evaluate_application_velocity(data: ApplicationData) -> RiskFactor:
    name = "Application Velocity"
    recent = data.loan_applications_last_30_days
    if recent >= 5:
        return _factor(
            name,
            f"{recent} applications in 30 days",
            RiskLevel.CRITICAL,
            35.0,
            "Extremely high application velocity suggests automated fraud",
            True,
        )
    if recent >= 3:
        return _factor(
            name,
            f"{recent} applications in 30 days",
            RiskLevel.HIGH,
            20.0,
            "High application velocity is concerning",
            True,
        )
    if recent == 2:
        return _factor(
            name,
            f"{recent} applications in 30 days",
            RiskLevel.LOW,
            5.0,
            "Multiple applications may indicate shopping for best rate",
            False,
        )
    return _factor(name, "First application in 30 days", RiskLevel.SAFE, 0.0, "Normal application pattern", False)


def evaluate_address_verification(data: ApplicationData) -> RiskFactor:
    name = "Address Verification"
    months = data.address_age_months
    if months < 3 and data.address_type.upper() == "PO_BOX":
        return _factor(
            name,
            "PO Box address, recent",
            RiskLevel.HIGH,
            25.0,
            "PO Box addresses recently established are higher risk",
            True,
        )
    if months < 6:
        return _factor(
            name, f"Recent address ({months} months)", RiskLevel.MEDIUM, 10.0, "Recently changed address", False
        )
    if not data.address_matches:
        return _factor(
            name,
            "Address doesn't match records",
            RiskLevel.MEDIUM,
            15.0,
            "Address mismatch across documents",
            True,
        )
    return _factor(
        name, f"Stable address ({months} months)", RiskLevel.SAFE, 0.0, "Address verified and stable", False
    )


def evaluate_employment_verification(data: ApplicationData) -> RiskFactor:
    name = "Employment Verification"
    if not data.employment_verified and not data.salary_verified:
        return _factor(
            name,
            "Cannot verify employment or salary",
            RiskLevel.HIGH,
            30.0,
            "Unable to confirm employment and income",
            True,
        )
    if data.employment_tenure_months < 3:
        return _factor(
            name,
            f"Very new job ({data.employment_tenure_months} months)",
            RiskLevel.MEDIUM,
            15.0,
            "Very recent employment",
            False,
        )
    if not data.salary_verified:
        return _factor(name, "Salary not verified", RiskLevel.MEDIUM, 10.0, "Cannot confirm stated income", False)
    return _factor(
        name, "Employment and salary verified", RiskLevel.SAFE, 0.0, "Employment successfully verified", False
    )


EVALUATORS: tuple[Evaluator, ...] = (
    evaluate_credit_file_age,
    evaluate_credit_activity,
    evaluate_identity_verification,
    evaluate_application_velocity,
    evaluate_address_verification,
    evaluate_employment_verification,
)


# --- Aggregation ----------------------------------------------------------------


def clamp_score(total: float) -> int:
    return max(0, min(100, int(total)))


def risk_level_for(total: float, factors: Sequence[RiskFactor]) -> RiskLevel:
    critical = sum(1 for f in factors if f.risk_level is RiskLevel.CRITICAL)
    high = sum(1 for f in factors if f.risk_level is RiskLevel.HIGH)
    if critical >= 2 or total >= 80:
        return RiskLevel.CRITICAL
    if critical >= 1 or total >= 60:
        return RiskLevel.HIGH
    if high >= 2 or total >= 40:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


# --- Legitimacy override --------------------------------------------------------

LegitimacyRule = tuple[str, Callable[[ApplicationData], bool], str, tuple[str, ...]]

# Checked in order; the first matching scenario wins.
LEGITIMACY_RULES: tuple[LegitimacyRule, ...] = (
    (
        "student",
        lambda d: 18 <= d.age <= 25 and d.is_student,
        "Young adult/student with naturally thin credit file",
        (
            "Consider alternative data (rent payments, utility bills)",
            "Accept education documents as proof of stability",
            "Lower loan amount to build credit history",
        ),
    ),
    (
        "recent_immigrant",
        lambda d: d.is_recent_immigrant and d.credit_file_age_months < 12,
        "Recent immigrant with no prior Indian credit history",
        (
            "Request international credit report",
            "Verify employment and visa status",
            "Consider secured credit products first",
        ),
    ),
    (
        "first_time_borrower",
        lambda d: d.has_verifiable_income_source
        and d.credit_file_age_months < 6
        and d.number_of_credit_accounts <= 1,
        "First-time formal credit user (previously unbanked population)",
        (
            "Verify alternate data: UPI transaction history, mobile wallet usage",
            "Consider microfinance or small credit line first",
            "Manual review with local branch",
        ),
    ),
    (
        "homemaker",
        lambda d: d.is_homemaker and d.has_co_applicant,
        "Homemaker with co-applicant (legitimate thin file)",
        (
            "Verify co-applicant's credit",
            "Consider household income, not just individual",
            "Accept alternate verification (property ownership, family ties)",
        ),
    ),
    (
        "rural_offline",
        lambda d: d.is_rural_customer and not d.has_digital_footprint,
        "Rural customer with limited digital/credit history (not fraud)",
        (
            "Manual verification through branch network",
            "Accept agricultural income proof, land records",
            "Village head/sarpanch recommendation",
        ),
    ),
)

NOT_LEGITIMATE = LegitimacyDetermination(
    is_legitimate=False,
    reason="Risk profile matches synthetic identity patterns",
    mitigation_steps=(
        "Enhanced identity verification required",
        "In-person verification at branch",
        "Video KYC with live identity check",
    ),
)

_STEP_TIMEFRAMES = ("1-2 days", "3-5 days")
_STEP_DIFFICULTIES = ("Easy", "Medium")

_RISK_RECOMMENDATIONS = {
    RiskLevel.CRITICAL: "Recommended Action: DENY\n\n"
    "This application shows multiple high-risk synthetic identity patterns. Do not approve.",
    RiskLevel.HIGH: "Recommended Action: MANUAL REVIEW\n\n"
    "Requires enhanced verification:\n- In-person branch visit\n- Video KYC\n- Additional documentation",
    RiskLevel.MEDIUM: "Recommended Action: ENHANCED VERIFICATION\n\n"
    "Approve only after:\n- Document re-verification\n- Employment confirmation\n- Lower loan amount",
}
_LOW_RISK_RECOMMENDATION = "Recommended Action: APPROVE\n\nLow risk profile. Standard verification sufficient."


class SyntheticIdentityRiskEngine:
    """
    Scores a loan application for synthetic-identity fraud.

    Six independent evaluators produce weighted risk factors. A separate
    legitimacy policy then recognises customers whose thin credit file has
    a benign explanation (students, recent immigrants, first-time formal
    borrowers, homemakers with a co-applicant, offline rural customers);
    for them the recommendation and approval path come from the policy,
    whatever the score says.
    """

    def __init__(self, evaluators: Sequence[Evaluator] = EVALUATORS) -> None:
        self.evaluators = tuple(evaluators)

    def analyze_application(self, customer_id: str, data: ApplicationData) -> RiskAnalysisResult:
        factors = tuple(evaluate(data) for evaluate in self.evaluators)
        total = sum(f.score_contribution for f in factors)
        level = risk_level_for(total, factors)
        legitimacy = self.check_for_legitimate_customer(data)

        result = RiskAnalysisResult(
            customer_id=customer_id,
            risk_score=clamp_score(total),
            risk_level=level,
            risk_factors=factors,
            legitimacy=legitimacy,
            explanation=build_explanation(factors, legitimacy),
            recommendation=build_recommendation(level, legitimacy),
            path_to_approval=tuple(build_path_to_approval(legitimacy)),
        )
        logger.debug(
            "application_scored",
            extra={
                "customer_id": customer_id,
                "risk_score": result.risk_score,
                "risk_level": level.value,
                "is_legitimate": legitimacy.is_legitimate,
            },
        )
        return result

    @staticmethod
    def check_for_legitimate_customer(data: ApplicationData) -> LegitimacyDetermination:
        for _, matches, reason, steps in LEGITIMACY_RULES:
            if matches(data):
                return LegitimacyDetermination(is_legitimate=True, reason=reason, mitigation_steps=steps)
        return NOT_LEGITIMATE


def build_recommendation(level: RiskLevel, legitimacy: LegitimacyDetermination) -> str:
    if legitimacy.is_legitimate:
        lines = ["Recommended Action: APPROVE with alternate verification", "", "Steps:"]
        lines += [f"{i}. {step}" for i, step in enumerate(legitimacy.mitigation_steps, start=1)]
        lines += ["", "This helps include underserved populations without compromising security."]
        return "\n".join(lines)
    return _RISK_RECOMMENDATIONS.get(level, _LOW_RISK_RECOMMENDATION)


def build_path_to_approval(legitimacy: LegitimacyDetermination) -> list[ApprovalStep]:
    if not legitimacy.is_legitimate:
        return [
            ApprovalStep(
                step_number=1,
                title="Not Available",
                description="This application does not qualify for alternate approval path.",
                timeframe="N/A",
                difficulty="N/A",
            )
        ]
    return [
        ApprovalStep(
            step_number=i + 1,
            title=step,
            description="Complete this verification step",
            timeframe=_STEP_TIMEFRAMES[i] if i < len(_STEP_TIMEFRAMES) else "1 week",
            difficulty=_STEP_DIFFICULTIES[i] if i < len(_STEP_DIFFICULTIES) else "Medium",
        )
        for i, step in enumerate(legitimacy.mitigation_steps)
    ]


def build_explanation(factors: Sequence[RiskFactor], legitimacy: LegitimacyDetermination) -> str:
    suspicious = [f"- {f.name}: {f.explanation}" for f in factors if f.is_suspicious]
    if legitimacy.is_legitimate:
        lines = [
            "This application was flagged for review, but shows signs of a legitimate customer.",
            "",
            f"Reason: {legitimacy.reason}",
            "",
            "Risk Factors Detected:",
            *suspicious,
            "",
            "This customer may qualify through alternate verification.",
        ]
    else:
        lines = [
            "This application shows patterns consistent with synthetic identity fraud.",
            "",
            "Risk Factors:",
            *suspicious,
            "",
            "Enhanced verification recommended before approval.",
        ]
    return "\n".join(lines)
