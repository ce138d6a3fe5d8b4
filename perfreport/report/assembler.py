# perfreport/report/assembler.py
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..audit.aggregator import AggregatedReport
from ..services.enrichment import EnrichmentResult
from ..services.estimator import SavingsEstimate, average_score
from ..services.storage import ReportStorage, report_name

logger = logging.getLogger(__name__)


def _finite(obj: Any) -> Any:
    """Replace NaN/inf with None so the JSON stays standard."""
    if isinstance(obj, float) and not math.isfinite(obj):
        return None
    if isinstance(obj, dict):
        return {k: _finite(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_finite(v) for v in obj]
    return obj


def json_dumps(obj: Any) -> str:
    return json.dumps(_finite(obj), ensure_ascii=False, allow_nan=False)


@dataclass(frozen=True)
class PerformanceReport:
    tasks: Tuple[Optional[EnrichmentResult], ...]
    performance: Optional[float]
    accessibility: Optional[float]
    seo: Optional[float]
    saving_metrics: Dict[str, float]
    metrics: Dict[str, Optional[str]]
    best_practices: Optional[float]
    money: SavingsEstimate

    def to_dict(self) -> Dict[str, Any]:
        return _finite({
            "tasks": [t.to_dict() if t is not None else None for t in self.tasks],
            "performance": self.performance,
            "accessibility": self.accessibility,
            "seo": self.seo,
            "savingMetrics": dict(self.saving_metrics),
            "metrics": dict(self.metrics),
            "bestPractices": self.best_practices,
            "money": self.money.to_dict(),
        })

    def to_json(self) -> str:
        return json_dumps(self.to_dict())


class ReportAssembler:
    def __init__(self, storage: ReportStorage):
        self.storage = storage

    @staticmethod
    def assemble(
        report: AggregatedReport,
        tasks: List[Optional[EnrichmentResult]],
        money: SavingsEstimate,
    ) -> PerformanceReport:
        return PerformanceReport(
            tasks=tuple(tasks),
            performance=average_score(report.performance),
            accessibility=average_score(report.accessibility),
            seo=average_score(report.seo),
            saving_metrics=dict(report.saving_metrics),
            metrics=dict(report.metrics),
            best_practices=report.best_practices,
            money=money,
        )

    async def publish(self, result: PerformanceReport, guid: str) -> str:
        """Persist the report as report_<guid>.json. Storage errors propagate."""
        name = report_name(guid)
        await self.storage.save(name, result.to_json())
        return name
