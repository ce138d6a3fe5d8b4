# perfreport/audit/aggregator.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from .findings import Finding, FindingStore, MeasurementRun

logger = logging.getLogger(__name__)

# Label -> Lighthouse audit id of the four headline metrics.
HEADLINE_METRIC_IDS: Dict[str, str] = {
    "LCP": "largest-contentful-paint-element",
    "TBT": "total-blocking-time",
    "FCP": "first-contentful-paint",
    "CLS": "cumulative-layout-shift",
}


class AuditEngine(Protocol):
    async def run(self, url: str) -> MeasurementRun:
        ...


@dataclass(frozen=True)
class AggregatedReport:
    findings: List[Finding]
    saving_metrics: Dict[str, float]
    metrics: Dict[str, Optional[str]]
    performance: List[Optional[float]] = field(default_factory=list)
    accessibility: List[Optional[float]] = field(default_factory=list)
    seo: List[Optional[float]] = field(default_factory=list)
    best_practices: Optional[float] = None


class MeasurementAggregator:
    """
    Runs the audit engine `pass_count` times in a row and folds every pass
    into one FindingStore. A failed pass aborts the whole aggregation.
    """

    def __init__(self, headline_ids: Optional[Dict[str, str]] = None):
        self.headline_ids = dict(headline_ids or HEADLINE_METRIC_IDS)

    async def run(self, engine: AuditEngine, url: str, pass_count: int = 1) -> AggregatedReport:
        if pass_count < 1:
            raise ValueError("pass_count must be >= 1")

        store = FindingStore()
        performance: List[Optional[float]] = []
        accessibility: List[Optional[float]] = []
        seo: List[Optional[float]] = []
        best_practices: Optional[float] = None
        last_audits: Dict[str, Dict[str, Any]] = {}

        for current in range(1, pass_count + 1):
            logger.info("Start to generate audit report for pass %d/%d: %s", current, pass_count, url)
            run = await engine.run(url)
            performance.append(run.performance)
            accessibility.append(run.accessibility)
            seo.append(run.seo)
            best_practices = run.best_practices
            store.ingest(run)
            last_audits = run.audits
            logger.info("Pass %d added to aggregated report (%d audits)", current, len(run.audits))

        ranked = store.ranked_findings()
        logger.info("Aggregated %d unique findings, %d ranked", len(store), len(ranked))

        return AggregatedReport(
            findings=ranked,
            saving_metrics=store.saving_metrics(self.headline_ids.values()),
            metrics=store.headline_metric_values(self.headline_ids, last_audits),
            performance=performance,
            accessibility=accessibility,
            seo=seo,
            best_practices=best_practices,
        )
