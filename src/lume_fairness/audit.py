from __future__ import annotations

import hashlib
import logging
import threading
import time
import uuid
from collections import deque
from dataclasses import asdict, dataclass, replace
from typing import Any, Mapping

from lume_fairness.analytics.schemas import BiasAuditReport, FairnessMetricsReport, RiskAnalysisResult

logger = logging.getLogger("lume.audit")


@dataclass(frozen=True)
class AuditEvent:
    ts: float
    event_id: str
    event_type: str
    customer_id: str | None
    payload: dict[str, Any]


def _default_allow_payload_keys() -> set[str]:
    """
    Allowlist for audit payload keys that are expected to be non-sensitive.

    Keeps the outcome of each engine (severities, scores, flags, group-level
    rates) and drops anything that could echo raw customer attributes.
    """

    return {
        "decision_id",
        "decision_type",
        "bias_detected",
        "severity",
        "affected_groups",
        "age_group",
        "n_decisions",
        "overall_fairness_score",
        "needs_intervention",
        "category_severities",
        "compounded_disadvantage",
        "risk_score",
        "risk_level",
        "is_legitimate",
        "legitimacy_reason",
        "suspicious_factors",
    }


@dataclass(frozen=True)
class PIIRedactor:
    """
    Removes or hashes personal data before audit events leave the process.

    Unrecognized payload keys are dropped when `allow_payload_keys` is set,
    customer identifiers are hashed by default, and long strings are
    truncated.
    """

    allow_payload_keys: set[str] | None = None
    drop_disallowed_payload_keys: bool = True
    remove_customer_id: bool = False
    hash_customer_id: bool = True
    hash_salt: str | None = None
    truncate_strings_at: int = 256
    max_list_items: int = 50

    def redact_event(self, event: AuditEvent) -> AuditEvent:
        """
        Return a sanitized copy of the given event.
        """

        safe_payload = self._redact_payload(event.payload)
        customer_id = None if self.remove_customer_id else event.customer_id
        if customer_id is not None and self.hash_customer_id:
            customer_id = self._hash_value(customer_id)

        return replace(event, customer_id=customer_id, payload=safe_payload)

    def _redact_payload(self, payload: Mapping[str, Any] | None) -> dict[str, Any]:
        if not isinstance(payload, Mapping):
            return {}

        cleaned: dict[str, Any] = {}
        allowed = self.allow_payload_keys
        for key, value in payload.items():
            key = str(key)
            if allowed is not None and key not in allowed and self.drop_disallowed_payload_keys:
                logger.debug("audit_redaction_dropped_key", extra={"key": key})
                continue
            cleaned[key] = self._sanitize_value(value)
        return cleaned

    def _sanitize_value(self, value: Any) -> Any:
        if value is None or isinstance(value, (int, float, bool)):
            return value
        if isinstance(value, str):
            return value[: self.truncate_strings_at]
        if isinstance(value, Mapping):
            return {str(k): self._sanitize_value(v) for k, v in value.items()}
        if isinstance(value, (list, tuple, set, frozenset)):
            limited = list(value)[: self.max_list_items]
            return [self._sanitize_value(v) for v in limited]
        return str(value)[: self.truncate_strings_at]

    def _hash_value(self, value: Any) -> str:
        h = hashlib.sha256()
        if self.hash_salt:
            h.update(str(self.hash_salt).encode("utf-8"))
        h.update(str(value).encode("utf-8"))
        return h.hexdigest()


class AuditTrail:
    """
    Caller-owned audit sink.

    Every recorded event is redacted, emitted on the `lume.audit` logger and
    kept in a bounded in-memory buffer (oldest events fall off first).
    Durable storage is left to whoever consumes the log stream.
    """

    def __init__(self, *, redactor: PIIRedactor | None = None, max_events: int = 1000) -> None:
        self.redactor = redactor
        self._events: deque[AuditEvent] = deque(maxlen=max(1, int(max_events)))
        self._lock = threading.Lock()

    def record(self, event: AuditEvent) -> AuditEvent:
        safe_event = self.redactor.redact_event(event) if self.redactor else event
        with self._lock:
            self._events.append(safe_event)
        logger.info(safe_event.event_type, extra={"audit": asdict(safe_event)})
        return safe_event

    def events(self, event_type: str | None = None) -> list[AuditEvent]:
        """Buffered events, oldest first, optionally filtered by type."""
        with self._lock:
            snapshot = list(self._events)
        if event_type:
            return [e for e in snapshot if e.event_type == event_type]
        return snapshot

    def count(self, event_type: str | None = None) -> int:
        return len(self.events(event_type))


def now_ts() -> float:
    return time.time()


def new_event_id() -> str:
    return uuid.uuid4().hex


def bias_audit_event(report: BiasAuditReport, customer_id: str, *, decision_type: str = "") -> AuditEvent:
    warning = report.bias_warning
    return AuditEvent(
        ts=now_ts(),
        event_id=new_event_id(),
        event_type="bias_audit",
        customer_id=customer_id,
        payload={
            "decision_id": report.decision_id,
            "decision_type": decision_type,
            "bias_detected": report.bias_detected,
            "severity": warning.severity.value if warning else None,
            "affected_groups": list(warning.affected_groups) if warning else [],
            "age_group": report.customer_demographics.age_group,
        },
    )


def fairness_report_event(report: FairnessMetricsReport) -> AuditEvent:
    # Aggregate only; no per-customer data.
    return AuditEvent(
        ts=now_ts(),
        event_id=new_event_id(),
        event_type="fairness_report",
        customer_id=None,
        payload={
            "n_decisions": report.total_decisions_analyzed,
            "overall_fairness_score": report.overall_fairness_score,
            "needs_intervention": report.needs_intervention,
            "category_severities": {
                m.category: m.severity.value
                for m in (report.age_metrics, report.location_metrics, report.digital_literacy_metrics)
            },
            "compounded_disadvantage": report.intersectional_analysis.compounded_disadvantage,
        },
    )


def risk_analysis_event(result: RiskAnalysisResult) -> AuditEvent:
    return AuditEvent(
        ts=now_ts(),
        event_id=new_event_id(),
        event_type="risk_analysis",
        customer_id=result.customer_id,
        payload={
            "risk_score": result.risk_score,
            "risk_level": result.risk_level.value,
            "is_legitimate": result.legitimacy.is_legitimate,
            "legitimacy_reason": result.legitimacy.reason,
            "suspicious_factors": [f.name for f in result.suspicious_factors],
        },
    )


def build_redactor_from_settings(settings: Any) -> PIIRedactor:
    """
    Build a PIIRedactor using Settings values when present.

    Missing fields fall back to conservative defaults so customer data is
    not emitted even if the settings object is incomplete.
    """

    allow_keys = getattr(settings, "audit_allow_payload_keys", None)
    remove_customer_id = getattr(settings, "audit_remove_customer_id", False)
    hash_customer_id = getattr(settings, "audit_hash_customer_id", True)
    hash_salt = getattr(settings, "audit_hash_salt", None)
    truncate_at = getattr(settings, "audit_truncate_payload_strings", 256)
    max_list_items = getattr(settings, "audit_max_list_items", 50)

    return PIIRedactor(
        allow_payload_keys=set(allow_keys) if allow_keys is not None else _default_allow_payload_keys(),
        remove_customer_id=bool(remove_customer_id),
        hash_customer_id=bool(hash_customer_id),
        hash_salt=hash_salt,
        truncate_strings_at=int(truncate_at),
        max_list_items=int(max_list_items),
    )


def build_audit_trail_from_settings(settings: Any) -> AuditTrail:
    return AuditTrail(
        redactor=build_redactor_from_settings(settings),
        max_events=int(getattr(settings, "audit_buffer_size", 1000)),
    )
