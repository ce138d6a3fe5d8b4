# perfreport/services/enrichment.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ..audit.findings import Finding
from ..errors import PipelineCancelled, TextServiceError
from .ai_service import TextService, estimation_messages, ticket_messages
from .retry import Sleep, retry_on_rate_limit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnrichmentResult:
    finding: Finding
    ticket_text: str
    estimate_hours: str  # raw completion, parsed by the estimator

    def to_dict(self) -> Dict[str, Any]:
        return {
            "finding": self.finding.raw,
            "ticketText": self.ticket_text,
            "estimateHours": self.estimate_hours,
        }


class EnrichmentPipeline:
    """
    Turns ranked findings into tickets with hour estimates, one finding at a
    time. The output has one entry per input finding, in input order; a
    finding whose enrichment failed is represented by None.
    """

    def __init__(
        self,
        text_service: TextService,
        *,
        inter_call_delay: float = 0.1,
        rate_limit_delay: float = 1.0,
        max_rate_limit_retries: Optional[int] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.text_service = text_service
        self.inter_call_delay = inter_call_delay
        self.rate_limit_delay = rate_limit_delay
        self.max_rate_limit_retries = max_rate_limit_retries
        self.sleep = sleep

    async def enrich_one(self, finding: Finding) -> EnrichmentResult:
        ticket = await self.text_service.complete(ticket_messages(finding.to_json()))
        await self.sleep(self.inter_call_delay)
        estimate = await self.text_service.complete(estimation_messages(ticket))
        return EnrichmentResult(finding=finding, ticket_text=ticket, estimate_hours=estimate.strip())

    async def enrich(
        self,
        findings: Sequence[Finding],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[Optional[EnrichmentResult]]:
        results: List[Optional[EnrichmentResult]] = []
        for index, finding in enumerate(findings):
            try:
                result = await retry_on_rate_limit(
                    lambda: self.enrich_one(finding),
                    delay=self.rate_limit_delay,
                    max_retries=self.max_rate_limit_retries,
                    sleep=self.sleep,
                    cancel_event=cancel_event,
                    label=f"finding {index} ({finding.id})",
                )
            except PipelineCancelled:
                raise
            except TextServiceError as e:
                logger.warning("Enrichment failed for %s: %s", finding.id, e)
                results.append(None)
                continue
            except Exception:
                logger.exception("Unexpected enrichment error for %s", finding.id)
                results.append(None)
                continue
            results.append(result)
            logger.info("Finding %d/%d enriched: %s", index + 1, len(findings), finding.id)
        return results
