from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Sequence

from lume_fairness.analytics.schemas import (
    CustomerProfile,
    Decision,
    DemographicFairnessMetric,
    FairnessMetricsReport,
    IntersectionalBiasAnalysis,
    IntersectionalGroup,
    Severity,
)

logger = logging.getLogger("lume.fairness")

ProfilePredicate = Callable[[CustomerProfile], bool]


def _young(p: CustomerProfile) -> bool:
    return p.age < 30


def _middle(p: CustomerProfile) -> bool:
    return 30 <= p.age <= 59


def _elderly(p: CustomerProfile) -> bool:
    return p.age >= 60


def _location(value: str) -> ProfilePredicate:
    return lambda p: p.location_type == value


def _literacy(value: str) -> ProfilePredicate:
    return lambda p: p.digital_literacy == value


def _all_of(*predicates: ProfilePredicate) -> ProfilePredicate:
    return lambda p: all(pred(p) for pred in predicates)


@dataclass(frozen=True)
class SeverityThresholds:
    """
    Parity (percentage points) and disparate-impact cut-offs for one category.

    A category is HIGH when parity >= `high_parity` or ratio < `high_ratio`,
    MEDIUM when parity >= `medium_parity` or ratio < `medium_ratio`.
    """

    high_parity: float
    medium_parity: float
    high_ratio: float = 0.7
    medium_ratio: float = 0.8

    def classify(self, parity: float, ratio: float) -> Severity:
        if parity >= self.high_parity or ratio < self.high_ratio:
            return Severity.HIGH
        if parity >= self.medium_parity or ratio < self.medium_ratio:
            return Severity.MEDIUM
        return Severity.LOW


@dataclass(frozen=True)
class CategoryDefinition:
    name: str
    buckets: tuple[tuple[str, ProfilePredicate], ...]
    baseline: str
    thresholds: SeverityThresholds
    intervention_severities: frozenset[Severity]
    summary_label: str


AGE_CATEGORY = CategoryDefinition(
    name="Age",
    buckets=(("Young (18-29)", _young), ("Middle (30-59)", _middle), ("Elderly (60+)", _elderly)),
    baseline="Middle (30-59)",
    thresholds=SeverityThresholds(high_parity=20.0, medium_parity=10.0),
    intervention_severities=frozenset({Severity.HIGH}),
    summary_label="Age",
)

LOCATION_CATEGORY = CategoryDefinition(
    name="Location",
    buckets=(
        ("Urban", _location("urban")),
        ("Semi-Urban", _location("semi-urban")),
        ("Rural", _location("rural")),
    ),
    baseline="Urban",
    thresholds=SeverityThresholds(high_parity=25.0, medium_parity=15.0),
    intervention_severities=frozenset({Severity.HIGH, Severity.MEDIUM}),
    summary_label="Location",
)

DIGITAL_LITERACY_CATEGORY = CategoryDefinition(
    name="Digital Literacy",
    buckets=(
        ("High Digital Literacy", _literacy("high")),
        ("Medium Digital Literacy", _literacy("medium")),
        ("Low Digital Literacy", _literacy("low")),
    ),
    baseline="High Digital Literacy",
    thresholds=SeverityThresholds(high_parity=20.0, medium_parity=12.0),
    intervention_severities=frozenset({Severity.HIGH, Severity.MEDIUM}),
    summary_label="Digital literacy",
)

# (group name, description, membership predicate)
INTERSECTIONAL_COHORTS: tuple[tuple[str, str, ProfilePredicate], ...] = (
    (
        "Most Privileged",
        "Middle-age + Urban + High Tech",
        _all_of(_middle, _location("urban"), _literacy("high")),
    ),
    (
        "Most Disadvantaged",
        "Elderly + Rural + Low Tech",
        _all_of(_elderly, _location("rural"), _literacy("low")),
    ),
    ("Elderly Rural", "Age 60+ + Rural (any tech)", _all_of(_elderly, _location("rural"))),
    (
        "Young Urban Tech-Savvy",
        "Age <30 + Urban + High Tech",
        _all_of(_young, _location("urban"), _literacy("high")),
    ),
    (
        "Middle Rural Low-Tech",
        "Age 30-59 + Rural + Low Tech",
        _all_of(_middle, _location("rural"), _literacy("low")),
    ),
)

CATEGORY_WEIGHTS = {"Age": 0.30, "Location": 0.40, "Digital Literacy": 0.30}

_PARITY_SCORES = ((5.0, 10.0), (10.0, 8.0), (15.0, 6.0), (20.0, 4.0), (30.0, 2.0))
_RATIO_SCORES = ((0.95, 10.0), (0.85, 8.0), (0.80, 6.0), (0.75, 4.0), (0.70, 2.0))

_RECOMMENDATIONS = {
    "Age": {
        Severity.HIGH: "HIGH AGE BIAS: Implement manual review for elderly/young customers. "
        "Consider alternative credit assessment methods.",
        Severity.MEDIUM: "MODERATE AGE BIAS: Monitor age-based rejection patterns. "
        "Adjust digital footprint requirements for elderly customers.",
    },
    "Location": {
        Severity.HIGH: "CRITICAL LOCATION BIAS: Rural customers significantly disadvantaged. "
        "Accept alternative income documentation (land records, agricultural income).",
        Severity.MEDIUM: "MODERATE LOCATION BIAS: Review credit scoring model for rural fairness. "
        "Consider local references and asset-based lending.",
    },
    "Digital Literacy": {
        Severity.HIGH: "HIGH DIGITAL LITERACY BIAS: Digital footprint requirement unfairly penalizes "
        "low-tech customers. Offer in-branch assessment options.",
        Severity.MEDIUM: "MODERATE DIGITAL BIAS: Reduce weight of digital footprint in credit model. "
        "Provide digital literacy training programs.",
    },
}
ACCEPTABLE_RECOMMENDATION = "GOOD: Fairness metrics are within acceptable ranges. Continue monitoring."


def approval_rate(decisions: Sequence[Decision]) -> float:
    """
    Percentage of decisions whose factors all passed; 0.0 for an empty group.

    Factor weights are deliberately ignored by this proxy.
    """
    if not decisions:
        return 0.0
    approved = sum(1 for d in decisions if d.all_factors_passed)
    return approved / len(decisions) * 100.0


def _select(decisions: Sequence[Decision], predicate: ProfilePredicate) -> list[Decision]:
    return [d for d in decisions if predicate(d.customer_profile)]


def _ladder(value: float, steps: tuple[tuple[float, float], ...], *, ascending: bool) -> float:
    for cut, score in steps:
        if (value < cut) if ascending else (value >= cut):
            return score
    return 0.0


def parity_score(parity: float) -> float:
    return _ladder(parity, _PARITY_SCORES, ascending=True)


def disparate_impact_score(ratio: float) -> float:
    return _ladder(ratio, _RATIO_SCORES, ascending=False)


def metric_to_score(metric: DemographicFairnessMetric) -> float:
    """Map one category metric onto the 0-10 fairness scale."""
    return (parity_score(metric.demographic_parity) + disparate_impact_score(metric.disparate_impact_ratio)) / 2.0


def intersectional_severity(compounded_disadvantage: float) -> Severity:
    if compounded_disadvantage >= 40.0:
        return Severity.CRITICAL
    if compounded_disadvantage >= 25.0:
        return Severity.HIGH
    if compounded_disadvantage >= 15.0:
        return Severity.MEDIUM
    return Severity.LOW


def _intersectional_insight(disadvantage: float, severity: Severity) -> str:
    gap = round(disadvantage)
    if severity is Severity.CRITICAL:
        return (
            f"CRITICAL: Compounded disadvantage of {gap}%. Elderly rural customers with low digital "
            "literacy face SEVERE bias. Immediate intervention required - consider alternative "
            "assessment methods."
        )
    if severity is Severity.HIGH:
        return (
            f"HIGH CONCERN: {gap}% gap between most/least privileged groups. Intersectional bias "
            "detected - being elderly + rural + low-tech creates compounded disadvantage."
        )
    if severity is Severity.MEDIUM:
        return (
            f"MODERATE: {gap}% difference in outcomes. Some intersectional effects present. "
            "Monitor and adjust criteria."
        )
    return f"ACCEPTABLE: {gap}% gap is within tolerance. No critical intersectional bias detected."


class FairnessMetricsEngine:
    """
    Population-level fairness metrics over a batch of bank decisions.

    Stateless: every call recomputes from the full corpus in a single pass
    per category. Callers wanting low latency on large corpora cache the
    report themselves.
    """

    categories = (AGE_CATEGORY, LOCATION_CATEGORY, DIGITAL_LITERACY_CATEGORY)

    def calculate_fairness_metrics(self, decisions: Sequence[Decision]) -> FairnessMetricsReport:
        decisions = list(decisions)
        age, location, digital = (self.category_metric(decisions, c) for c in self.categories)
        intersectional = self.intersectional_analysis(decisions)

        report = FairnessMetricsReport(
            overall_fairness_score=self.overall_fairness_score(age, location, digital),
            age_metrics=age,
            location_metrics=location,
            digital_literacy_metrics=digital,
            intersectional_analysis=intersectional,
            needs_intervention=(
                age.needs_intervention
                or location.needs_intervention
                or digital.needs_intervention
                or intersectional.needs_intervention
            ),
            recommendations=tuple(self.recommendations(age, location, digital)),
            total_decisions_analyzed=len(decisions),
        )
        logger.debug(
            "fairness_report_computed",
            extra={
                "n_decisions": len(decisions),
                "overall_fairness_score": report.overall_fairness_score,
                "needs_intervention": report.needs_intervention,
            },
        )
        return report

    @staticmethod
    def category_metric(decisions: Sequence[Decision], category: CategoryDefinition) -> DemographicFairnessMetric:
        members = {name: _select(decisions, pred) for name, pred in category.buckets}
        breakdown = {name: approval_rate(group) for name, group in members.items()}
        baseline = breakdown[category.baseline]
        # Empty comparison buckets report a 0% rate but carry no evidence of disparity.
        others = [
            breakdown[name] for name, group in members.items() if name != category.baseline and group
        ]

        parity = max((abs(rate - baseline) for rate in others), default=0.0)
        ratio = min((rate / baseline for rate in others), default=1.0) if baseline > 0 else 1.0
        severity = category.thresholds.classify(parity, ratio)

        return DemographicFairnessMetric(
            category=category.name,
            demographic_parity=parity,
            disparate_impact_ratio=ratio,
            is_statistically_significant=parity >= category.thresholds.medium_parity,
            severity=severity,
            needs_intervention=severity in category.intervention_severities,
            group_breakdown=breakdown,
            detailed_analysis=(
                f"{category.summary_label} disparity: {round(parity)}%. "
                f"Disparate impact: {round(ratio * 100)}% ({'FAIR' if ratio >= 0.8 else 'BIASED'})"
            ),
        )

    @staticmethod
    def intersectional_analysis(decisions: Sequence[Decision]) -> IntersectionalBiasAnalysis:
        groups: list[IntersectionalGroup] = []
        for name, description, pred in INTERSECTIONAL_COHORTS:
            members = _select(decisions, pred)
            groups.append(
                IntersectionalGroup(
                    group_name=name,
                    description=description,
                    sample_size=len(members),
                    approval_rate=approval_rate(members),
                )
            )
        privileged, disadvantaged = groups[0].approval_rate, groups[1].approval_rate
        disadvantage = privileged - disadvantaged
        severity = intersectional_severity(disadvantage)

        return IntersectionalBiasAnalysis(
            compounded_disadvantage=disadvantage,
            severity=severity,
            needs_intervention=severity in (Severity.CRITICAL, Severity.HIGH),
            intersectional_groups=tuple(sorted(groups, key=lambda g: g.approval_rate, reverse=True)),
            key_insight=_intersectional_insight(disadvantage, severity),
        )

    @staticmethod
    def overall_fairness_score(
        age: DemographicFairnessMetric,
        location: DemographicFairnessMetric,
        digital: DemographicFairnessMetric,
    ) -> float:
        score = (
            metric_to_score(age) * CATEGORY_WEIGHTS["Age"]
            + metric_to_score(location) * CATEGORY_WEIGHTS["Location"]
            + metric_to_score(digital) * CATEGORY_WEIGHTS["Digital Literacy"]
        )
        # Float weights can overshoot the top of the scale by an ulp.
        return min(10.0, max(0.0, score))

    @staticmethod
    def recommendations(*metrics: DemographicFairnessMetric) -> list[str]:
        out: list[str] = []
        for metric in metrics:
            text = _RECOMMENDATIONS.get(metric.category, {}).get(metric.severity)
            if text:
                out.append(text)
        return out or [ACCEPTABLE_RECOMMENDATION]
