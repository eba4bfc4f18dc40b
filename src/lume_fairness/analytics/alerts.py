from __future__ import annotations

from lume_fairness.analytics.schemas import FraudAlert, RiskAnalysisResult, RiskFactor, RiskLevel


def to_fraud_alert(
    customer_id: str,
    bank_name: str,
    loan_amount: int,
    analysis: RiskAnalysisResult,
    *,
    alert_id: str,
    timestamp: int,
) -> FraudAlert:
    """
    Convert a risk analysis into the alert record consumed by the notification layer.

    Identifiers and timestamps are supplied by the caller so the conversion
    stays deterministic.
    """

    def flagged(name: str) -> list[RiskFactor]:
        return [f for f in analysis.risk_factors if f.name == name]

    suspicious_names = ", ".join(f.name for f in analysis.suspicious_factors)
    return FraudAlert(
        id=alert_id,
        customer_id=customer_id,
        amount=float(loan_amount),
        merchant_name=bank_name,
        risk_score=float(analysis.risk_score),
        risk_level=analysis.risk_level,
        status="BLOCKED" if analysis.risk_level is RiskLevel.CRITICAL else "FLAGGED",
        timestamp=timestamp,
        reason=f"Synthetic Identity Detection: {suspicious_names}",
        recommendation=analysis.recommendation,
        unusual_amount=any(f.is_suspicious for f in flagged("Credit Activity")),
        new_merchant=any(f.risk_level.rank >= RiskLevel.HIGH.rank for f in flagged("Credit File Age")),
        multiple_attempts=any(f.is_suspicious for f in flagged("Application Velocity")),
    )
