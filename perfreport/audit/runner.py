# perfreport/audit/runner.py
"""
Orchestration of one analysis: measure -> enrich -> estimate -> assemble ->
store. Every step runs strictly after the previous one. Pipeline state is
per invocation; only the database engine is shared by the process.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ..config import Settings
from ..database import get_session_factory
from ..report.assembler import PerformanceReport, ReportAssembler
from ..services.ai_service import GeminiTextService, TextService
from ..services.enrichment import EnrichmentPipeline
from ..services.estimator import calculate_savings, total_estimate_hours
from ..services.retry import Sleep
from ..services.storage import DatabaseReportStorage, FileReportStorage, ReportStorage
from .aggregator import AuditEngine, MeasurementAggregator
from .lighthouse import LighthouseCliEngine
from .psi import PageSpeedAuditEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BusinessParams:
    pages_per_visit: float
    ads_per_page: float
    visitor_quantity: float


class PerformanceReportRunner:
    def __init__(
        self,
        engine: AuditEngine,
        text_service: TextService,
        storage: ReportStorage,
        *,
        developer_rate: float,
        income_cost_coefficient: float,
        passes: int = 1,
        inter_call_delay: float = 0.1,
        rate_limit_delay: float = 1.0,
        max_rate_limit_retries: Optional[int] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.engine = engine
        self.text_service = text_service
        self.developer_rate = developer_rate
        self.income_cost_coefficient = income_cost_coefficient
        self.passes = passes
        self.aggregator = MeasurementAggregator()
        self.enrichment = EnrichmentPipeline(
            text_service,
            inter_call_delay=inter_call_delay,
            rate_limit_delay=rate_limit_delay,
            max_rate_limit_retries=max_rate_limit_retries,
            sleep=sleep,
        )
        self.assembler = ReportAssembler(storage)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PerformanceReportRunner":
        if settings.AUDIT_ENGINE == "lighthouse":
            engine: AuditEngine = LighthouseCliEngine(settings.LIGHTHOUSE_BIN)
        elif settings.AUDIT_ENGINE == "psi":
            engine = PageSpeedAuditEngine(settings.PSI_API_KEY, settings.PSI_STRATEGY)
        else:
            raise ValueError(f"Unknown AUDIT_ENGINE: {settings.AUDIT_ENGINE}")

        if settings.REPORT_STORAGE == "database":
            storage: ReportStorage = DatabaseReportStorage(get_session_factory(settings.DATABASE_URL))
        elif settings.REPORT_STORAGE == "file":
            storage = FileReportStorage(settings.REPORT_DIR)
        else:
            raise ValueError(f"Unknown REPORT_STORAGE: {settings.REPORT_STORAGE}")

        text_service = GeminiTextService(
            settings.GEMINI_API_KEY,
            settings.GEMINI_MODEL,
            temperature=settings.TEXT_TEMPERATURE,
            top_p=settings.TEXT_TOP_P,
            timeout=settings.TEXT_TIMEOUT,
        )
        return cls(
            engine,
            text_service,
            storage,
            developer_rate=settings.DEVELOPER_RATE,
            income_cost_coefficient=settings.INCOME_COST_COEFFICIENT,
            passes=settings.MEASUREMENT_PASSES,
            inter_call_delay=settings.INTER_CALL_DELAY,
            rate_limit_delay=settings.RATE_LIMIT_DELAY,
            max_rate_limit_retries=settings.RATE_LIMIT_MAX_RETRIES,
        )

    async def aclose(self) -> None:
        close = getattr(self.text_service, "aclose", None)
        if close is not None:
            await close()

    async def run(
        self,
        url: str,
        guid: str,
        params: BusinessParams,
        cancel_event: Optional[asyncio.Event] = None,
        passes: Optional[int] = None,
    ) -> PerformanceReport:
        logger.info("Analyzing URL %s (report %s)", url, guid)

        aggregated = await self.aggregator.run(self.engine, url, passes or self.passes)
        tasks = await self.enrichment.enrich(aggregated.findings, cancel_event=cancel_event)

        hours = total_estimate_hours(t.estimate_hours if t is not None else None for t in tasks)
        money = calculate_savings(
            visitor_quantity=params.visitor_quantity,
            total_hours=hours,
            pages_per_visit=params.pages_per_visit,
            ads_per_page=params.ads_per_page,
            total_blocking_time=aggregated.saving_metrics.get("TBT", 0),
            largest_contentful_paint=aggregated.saving_metrics.get("LCP", 0),
            developer_rate=self.developer_rate,
            income_cost_coefficient=self.income_cost_coefficient,
        )
        logger.info("Estimated %.1f hours of work for %s", hours, url)

        result = self.assembler.assemble(aggregated, tasks, money)
        await self.assembler.publish(result, guid)
        return result
