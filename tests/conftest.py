from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional, Sequence

import pytest

from perfreport.audit.findings import MeasurementRun
from perfreport.services.ai_service import TICKET_PROMPT, ChatMessage


def make_audit(audit_id: str, guidance_level: Optional[int] = None, savings: Optional[dict] = None,
               display_value: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
    audit: Dict[str, Any] = {"id": audit_id, "title": audit_id.replace("-", " ").title()}
    if guidance_level is not None:
        audit["guidanceLevel"] = guidance_level
    if savings is not None:
        audit["metricSavings"] = savings
    if display_value is not None:
        audit["displayValue"] = display_value
    audit.update(extra)
    return audit


def make_run(audits: Sequence[Dict[str, Any]], performance: float = 0.5, accessibility: float = 0.8,
             seo: float = 0.9, best_practices: float = 0.7) -> MeasurementRun:
    return MeasurementRun(
        performance=performance,
        accessibility=accessibility,
        seo=seo,
        best_practices=best_practices,
        audits={a["id"]: a for a in audits},
    )


def finding_id_of(messages: Sequence[ChatMessage]) -> Optional[str]:
    """The audit id inside a ticket prompt, None for estimation prompts."""
    if messages[0].content != TICKET_PROMPT:
        return None
    return json.loads(messages[-1].content)["id"]


class FakeEngine:
    def __init__(self, runs: List[Any]):
        self.runs = list(runs)
        self.urls: List[str] = []

    async def run(self, url: str) -> MeasurementRun:
        self.urls.append(url)
        item = self.runs.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakeTextService:
    """
    Answers ticket prompts with 'Ticket for <id>' and estimation prompts
    with `estimate`. `handler` may raise or return to override a call.
    """

    def __init__(self, handler: Optional[Callable[[Sequence[ChatMessage]], Optional[str]]] = None,
                 estimate: str = "8"):
        self.handler = handler
        self.estimate = estimate
        self.calls: List[List[ChatMessage]] = []
        self.closed = False

    async def complete(self, messages: Sequence[ChatMessage]) -> str:
        self.calls.append(list(messages))
        if self.handler is not None:
            answer = self.handler(messages)
            if answer is not None:
                return answer
        fid = finding_id_of(messages)
        if fid is not None:
            return f"Ticket for {fid}"
        return self.estimate

    async def aclose(self) -> None:
        self.closed = True


class MemoryStorage:
    def __init__(self, fail: Optional[Exception] = None):
        self.saved: Dict[str, str] = {}
        self.fail = fail

    async def save(self, name: str, payload: str) -> None:
        if self.fail is not None:
            raise self.fail
        self.saved[name] = payload


class RecordingSleep:
    def __init__(self, on_sleep: Optional[Callable[[float], None]] = None):
        self.calls: List[float] = []
        self.on_sleep = on_sleep

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)
        if self.on_sleep is not None:
            self.on_sleep(delay)


@pytest.fixture()
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def sample_run() -> MeasurementRun:
    return make_run([
        make_audit("render-blocking-resources", 3, {"FCP": 300, "LCP": 450}, "Potential savings of 450 ms"),
        make_audit("unused-javascript", 2, {"LCP": 150, "TBT": 100}, "Potential savings of 120 KiB"),
        make_audit("largest-contentful-paint-element", 1, {"LCP": 2000}, "2,000 ms"),
        make_audit("total-blocking-time", None, None, "350 ms"),
        make_audit("first-contentful-paint", None, None, "1.2 s"),
        make_audit("cumulative-layout-shift", None, None, "0.05"),
        make_audit("viewport", None, None),
    ])
