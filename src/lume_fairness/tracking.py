from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from lume_fairness.errors import UnknownDecisionDetails


class ApplicationStatus(str, Enum):
    PENDING = "PENDING"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PENDING_DOCUMENTS = "PENDING_DOCUMENTS"
    NOT_FOUND = "NOT_FOUND"


@dataclass(frozen=True)
class RejectionDetails:
    """A rejection where the bank disclosed its specific reasons."""

    primary_reason: str
    factors: tuple[str, ...] = ()
    specific_details: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class GenericRejection:
    """A rejection carrying only a vague, non-specific message."""

    message: str
    is_vague: bool = True


@dataclass(frozen=True)
class ApprovedDetails:
    approved_amount: str
    interest_rate: str
    tenure: str
    processing_fee: str


@dataclass(frozen=True)
class PendingDetails:
    current_stage: str
    estimated_completion: str
    pending_items: tuple[str, ...] = ()


DecisionDetails = Union[RejectionDetails, GenericRejection, ApprovedDetails, PendingDetails]


@dataclass(frozen=True)
class ApplicationOutcome:
    application_number: str
    status: ApplicationStatus
    message: str
    details: DecisionDetails | None
    next_steps: tuple[str, ...]


_CREDIT_SCORE_STEPS = (
    "Download your free credit report and dispute any inaccuracies within 30 days",
    "Reduce credit utilization below 30%",
    "Pay all bills on time for the next 6 months (set up auto-pay)",
    "Consider a secured credit card or a co-applicant with a stronger score",
)
_DEBT_STEPS = (
    "Calculate your exact debt-to-income ratio",
    "Pay off or consolidate existing loans to lower your EMI",
    "Document all income sources (salary, freelance, rent)",
    "Apply with a co-applicant or for a secured loan (gold, property, FD)",
)
_EMPLOYMENT_STEPS = (
    "Get an employment verification letter from HR",
    "Collect 3-6 months of salary slips and bank statements",
    "Show previous employment history (Form 16 from earlier employers)",
    "Apply with a co-applicant who has a stable job, or reapply after 6-12 months",
)
_DOCUMENTATION_STEPS = (
    "Gather 6 months of salary slips and bank statements",
    "Ensure Aadhaar and PAN addresses match",
    "Provide a utility bill from the last 3 months as address proof",
    "Reapply with the complete document set",
)
_GENERAL_REJECTION_STEPS = (
    "Call the bank helpline for the exact reason",
    "Request a detailed rejection report in writing",
    "Check your credit report for red flags",
    "Wait 30 days before reapplying to the same bank",
)
_GENERIC_REJECTION_STEPS = (
    "Contact the bank for the specific rejection reason",
    "Request a manual review of your application",
    "Wait 30 days before reapplying to the same bank",
)
_APPROVED_STEPS = (
    "Complete digital KYC verification",
    "Upload required documents",
    "Sign loan agreement digitally",
    "Funds will be disbursed in 48 hours",
)
_PENDING_STEPS = (
    "Keep your phone available for verification call",
    "Ensure documents are up to date",
    "Check status in 2-3 days",
)


def _advice_for(primary_reason: str) -> tuple[str, ...]:
    reason = primary_reason.lower()
    if "credit score" in reason:
        return _CREDIT_SCORE_STEPS
    if "debt" in reason or "income" in reason:
        return _DEBT_STEPS
    if "employment" in reason:
        return _EMPLOYMENT_STEPS
    if "documentation" in reason or "incomplete" in reason:
        return _DOCUMENTATION_STEPS
    return _GENERAL_REJECTION_STEPS


def next_steps(details: DecisionDetails) -> tuple[str, ...]:
    """
    Suggested follow-up actions for the customer, per details variant.

    Raises `UnknownDecisionDetails` for anything outside the four variants.
    """
    if isinstance(details, RejectionDetails):
        return _advice_for(details.primary_reason)
    if isinstance(details, GenericRejection):
        return _GENERIC_REJECTION_STEPS
    if isinstance(details, ApprovedDetails):
        return _APPROVED_STEPS
    if isinstance(details, PendingDetails):
        return _PENDING_STEPS
    raise UnknownDecisionDetails(details)


DETAILED_REJECTIONS: tuple[RejectionDetails, ...] = (
    RejectionDetails(
        primary_reason="Credit Score Below Threshold",
        factors=(
            "Credit score: 620 (Required: 700+)",
            "3 late payments in last 12 months",
            "Credit utilization: 78% (High risk)",
        ),
        specific_details={"Credit Score": "620", "Required Score": "700", "Late Payments": "3 in last year"},
    ),
    RejectionDetails(
        primary_reason="High Debt-to-Income Ratio",
        factors=(
            "Debt-to-income ratio: 52% (Limit: 40%)",
            "Existing EMI: INR 38,000/month",
            "Declared income: INR 75,000/month",
        ),
        specific_details={"DTI Ratio": "52%", "Max Allowed": "40%", "Existing EMI": "INR 38,000"},
    ),
    RejectionDetails(
        primary_reason="Insufficient Employment History",
        factors=(
            "Current employment: 4 months (Required: 12+ months)",
            "Job changes: 3 in last 2 years",
            "Income stability concern",
        ),
        specific_details={
            "Employment Duration": "4 months",
            "Required Duration": "12 months",
            "Job Changes": "3 in 2 years",
        },
    ),
    RejectionDetails(
        primary_reason="Incomplete Documentation",
        factors=(
            "Salary slips missing for last 3 months",
            "Bank statements not updated",
            "ITR not filed for last year",
        ),
        specific_details={
            "Missing Documents": "Salary slips, ITR",
            "Last Updated": "6 months ago",
            "Action Required": "Submit latest documents",
        },
    ),
)

GENERIC_REJECTION_MESSAGES = (
    "Your application does not meet our current lending criteria",
    "Unable to proceed with your application at this time",
    "Application rejected as per bank's internal policy",
    "Your profile does not match our risk assessment parameters",
)

STANDARD_APPROVAL = ApprovedDetails(
    approved_amount="INR 5,00,000",
    interest_rate="10.5% p.a.",
    tenure="60 months",
    processing_fee="INR 2,500",
)


def simulate_application_outcome(application_number: str, rng: random.Random) -> ApplicationOutcome:
    """
    Simulate a bank's response to an application status lookup.

    The outcome depends only on the draws taken from `rng`: 40% detailed
    rejection, 30% generic rejection, 10% approval, 20% under review.
    """
    draw = rng.randrange(10)
    details: DecisionDetails
    if draw <= 3:
        details = DETAILED_REJECTIONS[draw % len(DETAILED_REJECTIONS)]
        status, message = ApplicationStatus.REJECTED, "Application has been rejected"
    elif draw <= 6:
        details = GenericRejection(message=rng.choice(GENERIC_REJECTION_MESSAGES))
        status, message = ApplicationStatus.REJECTED, "Application has been rejected"
    elif draw == 7:
        details = STANDARD_APPROVAL
        status, message = ApplicationStatus.APPROVED, "Congratulations! Your application has been approved"
    else:
        details = PendingDetails(
            current_stage="Credit Assessment",
            estimated_completion="3-5 business days",
            pending_items=("Credit score verification", "Income assessment"),
        )
        status, message = ApplicationStatus.UNDER_REVIEW, "Your application is under review"

    return ApplicationOutcome(
        application_number=application_number,
        status=status,
        message=message,
        details=details,
        next_steps=next_steps(details),
    )
