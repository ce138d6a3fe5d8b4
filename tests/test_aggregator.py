import asyncio

import pytest

from perfreport.audit.aggregator import MeasurementAggregator
from perfreport.errors import AuditEngineError

from conftest import FakeEngine, make_audit, make_run


def test_single_pass(sample_run):
    engine = FakeEngine([sample_run])
    report = asyncio.run(MeasurementAggregator().run(engine, "https://example.com"))

    assert engine.urls == ["https://example.com"]
    assert [f.id for f in report.findings] == [
        "render-blocking-resources",
        "unused-javascript",
        "largest-contentful-paint-element",
    ]
    assert report.saving_metrics == {"FCP": 300, "LCP": 600, "TBT": 100}
    assert report.metrics["TBT"] == "350 ms"
    assert report.performance == [0.5]
    assert report.best_practices == 0.7


def test_multiple_passes_accumulate_scores_and_dedup():
    first = make_run([make_audit("a", 1, {"TBT": 50}), make_audit("total-blocking-time", display_value="900 ms")],
                     performance=0.4, seo=0.8, best_practices=0.6)
    second = make_run([make_audit("a", 6, {"TBT": 70}), make_audit("b", 2)],
                      performance=0.6, seo=1.0, best_practices=0.9)
    engine = FakeEngine([first, second])

    report = asyncio.run(MeasurementAggregator().run(engine, "https://example.com", pass_count=2))

    assert report.performance == [0.4, 0.6]
    assert report.seo == [0.8, 1.0]
    assert report.best_practices == 0.9
    assert [(f.id, f.guidance_level) for f in report.findings] == [("a", 6), ("b", 2)]
    assert report.saving_metrics == {"TBT": 70}
    # headline values come from the last pass only
    assert report.metrics["TBT"] is None


def test_engine_failure_aborts_aggregation(sample_run):
    engine = FakeEngine([sample_run, AuditEngineError("chrome crashed")])

    with pytest.raises(AuditEngineError):
        asyncio.run(MeasurementAggregator().run(engine, "https://example.com", pass_count=2))


def test_pass_count_must_be_positive(sample_run):
    with pytest.raises(ValueError):
        asyncio.run(MeasurementAggregator().run(FakeEngine([sample_run]), "https://example.com", pass_count=0))
