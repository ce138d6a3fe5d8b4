# perfreport/audit/findings.py
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional


@dataclass(frozen=True)
class Finding:
    """
    One diagnosed audit issue.

    `raw` is the audit record exactly as the engine returned it; it is what the
    text service sees and what the report echoes back.
    """
    id: str
    guidance_level: Optional[int] = None
    display_value: Optional[str] = None
    metric_savings: Dict[str, float] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_audit(cls, audit: Mapping[str, Any], audit_id: Optional[str] = None) -> "Finding":
        savings = audit.get("metricSavings") or {}
        return cls(
            id=str(audit.get("id") or audit_id or ""),
            guidance_level=audit.get("guidanceLevel"),
            display_value=audit.get("displayValue"),
            metric_savings={k: v for k, v in savings.items() if isinstance(v, (int, float))},
            raw=dict(audit),
        )

    @property
    def is_ranked(self) -> bool:
        return self.guidance_level is not None

    def to_json(self) -> str:
        return json.dumps(self.raw, ensure_ascii=False)


@dataclass
class MeasurementRun:
    """Output of a single audit-engine invocation. Consumed immediately."""
    performance: Optional[float]
    accessibility: Optional[float]
    seo: Optional[float]
    best_practices: Optional[float]
    audits: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_lhr(cls, lhr: Mapping[str, Any]) -> "MeasurementRun":
        """Build a run from a Lighthouse result object (`lhr`)."""
        categories = lhr.get("categories") or {}

        def score(name: str) -> Optional[float]:
            return (categories.get(name) or {}).get("score")

        return cls(
            performance=score("performance"),
            accessibility=score("accessibility"),
            seo=score("seo"),
            best_practices=score("best-practices"),
            audits=dict(lhr.get("audits") or {}),
        )

    def findings(self) -> List[Finding]:
        return [Finding.from_audit(a, audit_id=k) for k, a in self.audits.items()]


class FindingStore:
    """
    Findings of one pipeline execution keyed by id.

    A later ingest overwrites an earlier finding with the same id; the entry
    keeps the position where that id was first seen.
    """

    def __init__(self) -> None:
        self._findings: Dict[str, Finding] = {}

    def __len__(self) -> int:
        return len(self._findings)

    def __contains__(self, finding_id: str) -> bool:
        return finding_id in self._findings

    def ingest(self, run: MeasurementRun) -> None:
        self.ingest_findings(run.findings())

    def ingest_findings(self, findings: Iterable[Finding]) -> None:
        for finding in findings:
            self._findings[finding.id] = finding

    def ranked_findings(self) -> List[Finding]:
        ranked = [f for f in self._findings.values() if f.is_ranked]
        # sorted() is stable, ties keep ingestion order
        return sorted(ranked, key=lambda f: f.guidance_level, reverse=True)

    def saving_metrics(self, headline_ids: Iterable[str]) -> Dict[str, float]:
        excluded = set(headline_ids)
        totals: Dict[str, float] = {}
        for finding in self.ranked_findings():
            if finding.id in excluded or not finding.metric_savings:
                continue
            for metric, value in finding.metric_savings.items():
                totals[metric] = totals.get(metric, 0) + value
        return totals

    @staticmethod
    def headline_metric_values(
        headline_ids: Mapping[str, str],
        last_run_audits: Mapping[str, Mapping[str, Any]],
    ) -> Dict[str, Optional[str]]:
        values: Dict[str, Optional[str]] = {}
        for label, audit_id in headline_ids.items():
            audit = last_run_audits.get(audit_id)
            values[label] = audit.get("displayValue") if audit else None
        return values
