from __future__ import annotations

import json
import random
import time
import uuid
from dataclasses import asdict
from pathlib import Path
from typing import Any, Optional

import typer
from pydantic import ValidationError

from lume_fairness.analytics.alerts import to_fraud_alert
from lume_fairness.analytics.bias import BiasDetector
from lume_fairness.analytics.fairness import FairnessMetricsEngine
from lume_fairness.analytics.schemas import ApplicationData, Decision
from lume_fairness.analytics.simulation import demo_scenarios, generate_mock_decisions
from lume_fairness.analytics.synthetic_identity import SyntheticIdentityRiskEngine
from lume_fairness.audit import (
    AuditTrail,
    bias_audit_event,
    build_audit_trail_from_settings,
    fairness_report_event,
    risk_analysis_event,
)
from lume_fairness.settings import get_settings
from lume_fairness.telemetry import configure_logging
from lume_fairness.tracking import simulate_application_outcome

app = typer.Typer(help="Lume decision fairness and risk analytics CLI.")


def _bootstrap() -> AuditTrail:
    settings = get_settings()
    configure_logging(settings.log_level, json_format=settings.log_json)
    return build_audit_trail_from_settings(settings)


def _load_json(raw: Optional[str], path: Optional[str], option: str) -> Any:
    if not raw and not path:
        raise typer.BadParameter(f"Provide either --{option}-json or --{option}-path")
    if raw and path:
        raise typer.BadParameter(f"Provide only one of --{option}-json or --{option}-path")
    try:
        if path:
            return json.loads(Path(path).read_text(encoding="utf-8"))
        return json.loads(raw or "{}")
    except (OSError, json.JSONDecodeError) as e:
        raise typer.BadParameter(f"Could not read {option} JSON: {e}") from e


def _parse_decision(raw: Optional[str], path: Optional[str]) -> Decision:
    payload = _load_json(raw, path, "decision")
    if not isinstance(payload, dict):
        raise typer.BadParameter("Decision must be a JSON object/dict")
    try:
        return Decision.model_validate(payload)
    except ValidationError as e:
        raise typer.BadParameter(f"Invalid decision: {e}") from e


def _echo(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2))


@app.command("bias-check")
def bias_check(
    decision_json: Optional[str] = typer.Option(None, help="Decision as a JSON string."),
    decision_path: Optional[str] = typer.Option(None, help="Path to a JSON file holding one decision."),
) -> None:
    """
    Check one bank decision for potential bias.
    """
    _bootstrap()
    decision = _parse_decision(decision_json, decision_path)
    warning = BiasDetector().analyze(decision)
    _echo(
        {
            "customer_id": decision.customer_id,
            "decision_type": decision.decision_type,
            "bias_detected": warning is not None,
            "bias_warning": warning.model_dump(mode="json") if warning else None,
        }
    )


@app.command("bias-audit")
def bias_audit(
    decision_json: Optional[str] = typer.Option(None, help="Decision as a JSON string."),
    decision_path: Optional[str] = typer.Option(None, help="Path to a JSON file holding one decision."),
) -> None:
    """
    Produce the full bias audit report for one decision.
    """
    audit = _bootstrap()
    decision = _parse_decision(decision_json, decision_path)
    report = BiasDetector().generate_audit_report(decision)
    audit.record(bias_audit_event(report, decision.customer_id, decision_type=decision.decision_type))
    _echo(report.model_dump(mode="json"))


@app.command("fairness-report")
def fairness_report(
    decisions_path: Optional[str] = typer.Option(None, help="Path to a JSON list of decisions."),
    demo: bool = typer.Option(False, help="Use the built-in demo population instead of a file."),
    seed: int = typer.Option(7, help="Random seed for the demo population."),
) -> None:
    """
    Compute population fairness metrics over a decision corpus.
    """
    audit = _bootstrap()
    if bool(decisions_path) == demo:
        raise typer.BadParameter("Provide either --decisions-path or --demo")

    if demo:
        decisions = generate_mock_decisions(random.Random(seed))
    else:
        try:
            payload = json.loads(Path(decisions_path or "").read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise typer.BadParameter(f"Could not read decisions JSON: {e}") from e
        if not isinstance(payload, list):
            raise typer.BadParameter("Decisions must be a JSON list")
        try:
            decisions = [Decision.model_validate(item) for item in payload]
        except ValidationError as e:
            raise typer.BadParameter(f"Invalid decision: {e}") from e

    report = FairnessMetricsEngine().calculate_fairness_metrics(decisions)
    audit.record(fairness_report_event(report))
    _echo(report.model_dump(mode="json"))


@app.command("risk-score")
def risk_score(
    customer_id: str = typer.Option(..., help="Customer identifier."),
    application_json: Optional[str] = typer.Option(None, help="Application data as a JSON string."),
    application_path: Optional[str] = typer.Option(None, help="Path to a JSON file of application data."),
    bank_name: Optional[str] = typer.Option(None, help="Bank name; when set, a fraud alert is included."),
) -> None:
    """
    Score a loan application for synthetic-identity risk.
    """
    audit = _bootstrap()
    payload = _load_json(application_json, application_path, "application")
    if not isinstance(payload, dict):
        raise typer.BadParameter("Application must be a JSON object/dict")
    try:
        data = ApplicationData.model_validate(payload)
    except ValidationError as e:
        raise typer.BadParameter(f"Invalid application: {e}") from e

    result = SyntheticIdentityRiskEngine().analyze_application(customer_id, data)
    audit.record(risk_analysis_event(result))
    out: dict[str, Any] = result.model_dump(mode="json")
    if bank_name:
        alert = to_fraud_alert(
            customer_id,
            bank_name,
            data.requested_loan_amount,
            result,
            alert_id=uuid.uuid4().hex,
            timestamp=int(time.time() * 1000),
        )
        out["fraud_alert"] = alert.model_dump(mode="json")
    _echo(out)


@app.command("demo-scenarios")
def demo_scenarios_cmd() -> None:
    """
    Run the bias detector over the four built-in demo decisions.
    """
    _bootstrap()
    detector = BiasDetector()
    rows = []
    for label, decision in demo_scenarios(timestamp=int(time.time() * 1000)):
        warning = detector.analyze(decision)
        rows.append(
            {
                "scenario": label,
                "customer_id": decision.customer_id,
                "decision_type": decision.decision_type,
                "bias_detected": warning is not None,
                "severity": warning.severity.value if warning else None,
                "affected_groups": list(warning.affected_groups) if warning else [],
            }
        )
    _echo(rows)


@app.command("track-application")
def track_application(
    application_number: str = typer.Argument(..., help="Bank application number."),
    seed: Optional[int] = typer.Option(None, help="Random seed; pins the simulated outcome."),
) -> None:
    """
    Simulate a bank's status response for an application (demo only).
    """
    _bootstrap()
    outcome = simulate_application_outcome(application_number, random.Random(seed))
    details = outcome.details
    _echo(
        {
            "application_number": outcome.application_number,
            "status": outcome.status.value,
            "message": outcome.message,
            "details_type": type(details).__name__ if details is not None else None,
            "details": asdict(details) if details is not None else None,
            "next_steps": list(outcome.next_steps),
        }
    )
