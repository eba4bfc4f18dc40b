from __future__ import annotations

import logging
import time
from typing import Callable

from lume_fairness.analytics.schemas import (
    BiasAuditReport,
    BiasWarning,
    CustomerDemographics,
    CustomerProfile,
    Decision,
    DecisionFactor,
    FactorBiasAnalysis,
    Severity,
)

logger = logging.getLogger("lume.bias")

ADVERSE_PATTERNS = ("DENIED", "DENIAL", "BLOCKED", "REDUCED")

# Factors that rural customers tend to fail for structural rather than credit reasons.
RURAL_SENSITIVE_FACTORS = frozenset(
    {"digital_footprint", "credit_score", "employment_tenure", "formal_income_proof"}
)

ELDERLY_GROUP = "Elderly customers (60+)"
YOUNG_GROUP = "Young customers (<25)"
RURAL_GROUP = "Rural customers"
LOW_LITERACY_GROUP = "Customers with low digital literacy"

_MESSAGES = {
    Severity.HIGH: "HIGH RISK: This decision may significantly disadvantage certain customer groups.",
    Severity.MEDIUM: "CAUTION: This decision may disadvantage certain customer groups.",
}
_DEFAULT_MESSAGE = "NOTICE: This decision involves factors that may affect certain groups differently."

_AGE_BUCKETS = ((25, "18-24"), (35, "25-34"), (45, "35-44"), (55, "45-54"), (65, "55-64"))


def _now_ms() -> int:
    return int(time.time() * 1000)


def is_adverse(decision_type: str) -> bool:
    """
    True when the decision type names a denial, block or reduction.
    """
    upper = decision_type.upper()
    return any(p in upper for p in ADVERSE_PATTERNS)


def categorize_age(age: int) -> str:
    for upper_bound, label in _AGE_BUCKETS:
        if age < upper_bound:
            return label
    return "65+"


class BiasDetector:
    """
    Flags adverse bank decisions whose failed factors fall disproportionately
    on protected customer groups (elderly, young, rural, low digital literacy).

    The detector holds no state besides the clock used to timestamp audit
    reports; `analyze` is a pure function of the decision.
    """

    def __init__(self, *, clock: Callable[[], int] = _now_ms) -> None:
        self._clock = clock

    def analyze(self, decision: Decision) -> BiasWarning | None:
        if not is_adverse(decision.decision_type):
            return None

        profile = decision.customer_profile
        reasons: list[str] = []
        groups: list[str] = []
        max_severity = Severity.LOW

        if profile.age > 60 or profile.age < 25:
            age_reason = self._check_age_bias(decision)
            if age_reason is not None:
                reasons.append(age_reason)
                groups.append(ELDERLY_GROUP if profile.age > 60 else YOUNG_GROUP)
                max_severity = max_severity.at_least(Severity.MEDIUM)

        if profile.location_type == "rural":
            location_reason = self._check_location_bias(decision)
            if location_reason is not None:
                reasons.append(location_reason)
                groups.append(RURAL_GROUP)
                max_severity = Severity.HIGH

        if profile.digital_literacy == "low":
            digital_reason = self._check_digital_literacy_bias(decision)
            if digital_reason is not None:
                reasons.append(digital_reason)
                groups.append(LOW_LITERACY_GROUP)
                max_severity = max_severity.at_least(Severity.MEDIUM)

        if not reasons:
            return None

        logger.debug(
            "bias_detected",
            extra={"customer_id": decision.customer_id, "severity": max_severity.value, "groups": groups},
        )
        return BiasWarning(
            severity=max_severity,
            message=_MESSAGES.get(max_severity, _DEFAULT_MESSAGE),
            affected_groups=tuple(groups),
            mitigation_steps=tuple(self._mitigation_steps(groups)),
        )

    def generate_audit_report(self, decision: Decision) -> BiasAuditReport:
        """
        Wrap `analyze` with the demographic bucket and a per-factor note on
        how susceptible each factor is to bias for this customer.

        Everything except `generated_at` is derived from the decision alone;
        `generated_at` comes from the detector's clock, so two reports for
        the same decision are identical only when that clock is fixed.
        """
        warning = self.analyze(decision)
        profile = decision.customer_profile
        return BiasAuditReport(
            decision_id=f"{decision.customer_id}_{decision.timestamp}",
            bias_detected=warning is not None,
            bias_warning=warning,
            customer_demographics=CustomerDemographics(
                age_group=categorize_age(profile.age),
                location=profile.location_type,
                digital_literacy=profile.digital_literacy,
            ),
            factor_analysis=tuple(
                FactorBiasAnalysis(
                    factor_name=f.technical_name,
                    passed=f.passed,
                    weight=f.weight,
                    potential_bias=assess_factor_bias(f, profile),
                )
                for f in decision.factors
            ),
            generated_at=self._clock(),
        )

    @staticmethod
    def _check_age_bias(decision: Decision) -> str | None:
        age = decision.customer_profile.age
        if age > 60:
            if decision.failed("digital_footprint"):
                return (
                    "Digital footprint requirements may disadvantage elderly customers who have less "
                    "online presence despite being financially stable."
                )
            if decision.failed("employment_tenure"):
                return (
                    "Employment tenure requirements may disadvantage elderly customers nearing "
                    "retirement or already retired."
                )
        if age < 25 and decision.failed("credit_score"):
            return (
                "Credit history requirements may disadvantage young customers who haven't had time "
                "to build credit."
            )
        return None

    @staticmethod
    def _check_location_bias(decision: Decision) -> str | None:
        failed = sum(
            1 for f in decision.factors if not f.passed and f.technical_name in RURAL_SENSITIVE_FACTORS
        )
        if failed >= 2:
            return (
                "Multiple factors (credit history, digital footprint, employment patterns) are assessed "
                "in ways that systematically disadvantage rural customers, despite their ability to repay."
            )
        return None

    @staticmethod
    def _check_digital_literacy_bias(decision: Decision) -> str | None:
        if decision.failed("digital_footprint"):
            return (
                "Digital footprint requirements assume all creditworthy customers have strong online "
                "presence, which disadvantages those with low digital literacy."
            )
        return None

    @staticmethod
    def _mitigation_steps(groups: list[str]) -> list[str]:
        # Group-specific steps are only offered for the checks that fired.
        steps = [
            "Request manual review with alternative documentation (income proof, references, asset verification)"
        ]
        if RURAL_GROUP in groups:
            steps.append(
                "Provide rural-specific documentation: land ownership records, agricultural income proof, "
                "or community references"
            )
        if ELDERLY_GROUP in groups:
            steps.append("Submit proof of retirement income, pension documents, or savings account statements")
        if LOW_LITERACY_GROUP in groups:
            steps.append("Visit branch for in-person assessment (no digital requirements)")
        steps.append("File a formal complaint if you believe the decision is unfair")
        return steps


def assess_factor_bias(factor: DecisionFactor, profile: CustomerProfile) -> str | None:
    name = factor.technical_name
    if name == "digital_footprint":
        if profile.digital_literacy == "low" or profile.location_type == "rural":
            return "May disadvantage customers with limited digital access"
    elif name == "credit_score":
        if profile.location_type == "rural" or profile.age < 25:
            return "May disadvantage customers with limited formal banking history"
    elif name == "employment_tenure":
        if profile.age > 60 or profile.location_type == "rural":
            return "May disadvantage elderly or rural customers with non-traditional employment"
    return None
