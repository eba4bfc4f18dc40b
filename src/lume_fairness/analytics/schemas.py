from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Record(BaseModel):
    """
    Base for every record crossing the engine boundary.

    Records are immutable once built. Upstream feeds use camelCase keys, so
    both the camelCase alias and the Python attribute name are accepted.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


class Severity(str, Enum):
    """Ordered bias severity: LOW < MEDIUM < HIGH < CRITICAL."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    def at_least(self, other: Severity) -> Severity:
        """Return whichever of the two severities is higher."""
        return self if self.rank >= other.rank else other


_SEVERITY_ORDER = [Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL]


class RiskLevel(str, Enum):
    """Ordered fraud risk tier: SAFE < LOW < MEDIUM < HIGH < CRITICAL."""

    SAFE = "SAFE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _RISK_ORDER.index(self)


_RISK_ORDER = [RiskLevel.SAFE, RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL]


# --- Bank decisions -----------------------------------------------------------


class DecisionFactor(_Record):
    technical_name: str = Field(min_length=1)
    value: str = ""
    # Informational only; weights are not required to sum to 1 across a decision.
    weight: float = 0.0
    threshold: str = ""
    passed: bool


class CustomerProfile(_Record):
    """
    Demographic context attached to a decision.

    `location_type` and `digital_literacy` are kept as plain strings: values
    outside the known vocabulary never match a bucket or a bias check.
    """

    age: int = Field(ge=0)
    location_type: str = Field(description="urban, semi-urban or rural")
    digital_literacy: str = Field(description="low, medium or high")
    language: str = "en"


class Decision(_Record):
    customer_id: str = Field(min_length=1, max_length=128)
    decision_type: str = Field(description="Free-form, e.g. LOAN_DENIAL or TRANSACTION_BLOCKED")
    timestamp: int = Field(ge=0, description="Epoch milliseconds.")
    factors: tuple[DecisionFactor, ...] = ()
    customer_profile: CustomerProfile

    def factor(self, technical_name: str) -> DecisionFactor | None:
        """First factor with the given technical name, if present."""
        for f in self.factors:
            if f.technical_name == technical_name:
                return f
        return None

    def failed(self, technical_name: str) -> bool:
        """True only when the factor is present and did not pass."""
        f = self.factor(technical_name)
        return f is not None and not f.passed

    @property
    def all_factors_passed(self) -> bool:
        return all(f.passed for f in self.factors)


# --- Bias detection -----------------------------------------------------------


class BiasWarning(_Record):
    severity: Severity
    message: str
    # Unique labels, kept in detection order.
    affected_groups: tuple[str, ...]
    mitigation_steps: tuple[str, ...]


class CustomerDemographics(_Record):
    age_group: str
    location: str
    digital_literacy: str


class FactorBiasAnalysis(_Record):
    factor_name: str
    passed: bool
    weight: float
    potential_bias: str | None = None


class BiasAuditReport(_Record):
    decision_id: str
    bias_detected: bool
    bias_warning: BiasWarning | None
    customer_demographics: CustomerDemographics
    factor_analysis: tuple[FactorBiasAnalysis, ...]
    generated_at: int = Field(description="Epoch milliseconds when the report was produced.")


# --- Fairness metrics ---------------------------------------------------------


class DemographicFairnessMetric(_Record):
    category: str
    demographic_parity: float = Field(ge=0, description="Percentage-point gap versus the baseline group.")
    disparate_impact_ratio: float = Field(ge=0)
    is_statistically_significant: bool
    severity: Severity
    needs_intervention: bool
    group_breakdown: dict[str, float] = Field(description="Group name -> approval rate in percent.")
    detailed_analysis: str


class IntersectionalGroup(_Record):
    group_name: str
    description: str
    sample_size: int = Field(ge=0)
    approval_rate: float


class IntersectionalBiasAnalysis(_Record):
    compounded_disadvantage: float
    severity: Severity
    needs_intervention: bool
    intersectional_groups: tuple[IntersectionalGroup, ...]
    key_insight: str


class FairnessMetricsReport(_Record):
    overall_fairness_score: float = Field(ge=0, le=10)
    age_metrics: DemographicFairnessMetric
    location_metrics: DemographicFairnessMetric
    digital_literacy_metrics: DemographicFairnessMetric
    intersectional_analysis: IntersectionalBiasAnalysis
    needs_intervention: bool
    recommendations: tuple[str, ...]
    total_decisions_analyzed: int = Field(ge=0)


# --- Synthetic identity risk --------------------------------------------------


class ApplicationData(_Record):
    """
    Structured attributes of a single loan application.

    The trailing block of demographic flags is only consulted by the
    legitimacy override; it never adds to the fraud score.
    """

    # Credit file
    credit_file_age_months: int = Field(ge=0)
    number_of_credit_accounts: int = Field(ge=0)
    recent_accounts_opened: int = Field(default=0, ge=0)
    credit_utilization: int = Field(default=0, ge=0, description="Percentage of available credit in use.")
    loan_applications_last_30_days: int = Field(default=0, ge=0)

    # Identity verification
    pan_verified: bool = True
    aadhaar_verified: bool = True
    address_matches: bool = True

    # Address
    address_age_months: int = Field(default=24, ge=0)
    address_type: str = Field(default="HOME", description="HOME, PO_BOX or OFFICE")

    # Employment
    employment_verified: bool = True
    employment_tenure_months: int = Field(default=24, ge=0)
    salary_verified: bool = True

    requested_loan_amount: int = Field(default=0, ge=0)

    # Legitimacy context
    age: int = Field(ge=0)
    is_student: bool = False
    is_recent_immigrant: bool = False
    has_verifiable_income_source: bool = False
    is_homemaker: bool = False
    has_co_applicant: bool = False
    is_rural_customer: bool = False
    has_digital_footprint: bool = True


class RiskFactor(_Record):
    name: str
    value: str
    risk_level: RiskLevel
    score_contribution: float = Field(ge=0, le=100)
    explanation: str
    is_suspicious: bool


class LegitimacyDetermination(_Record):
    is_legitimate: bool
    reason: str
    mitigation_steps: tuple[str, ...]


class ApprovalStep(_Record):
    step_number: int = Field(ge=1)
    title: str
    description: str
    timeframe: str
    difficulty: str


class RiskAnalysisResult(_Record):
    customer_id: str
    risk_score: int = Field(ge=0, le=100)
    risk_level: RiskLevel
    risk_factors: tuple[RiskFactor, ...]
    legitimacy: LegitimacyDetermination
    explanation: str
    recommendation: str
    path_to_approval: tuple[ApprovalStep, ...]

    @property
    def suspicious_factors(self) -> tuple[RiskFactor, ...]:
        return tuple(f for f in self.risk_factors if f.is_suspicious)


class FraudAlert(_Record):
    """
    Alert record handed to the notification layer for a scored application.
    """

    id: str
    customer_id: str
    transaction_type: str = "LOAN_APPLICATION"
    amount: float
    merchant_name: str
    location: str = "Online Application"
    risk_score: float
    risk_level: RiskLevel
    status: str = Field(description="BLOCKED or FLAGGED")
    timestamp: int
    reason: str
    recommendation: str
    unusual_amount: bool = False
    unusual_location: bool = False
    unusual_time: bool = False
    new_merchant: bool = False
    multiple_attempts: bool = False
    device_mismatch: bool = False
