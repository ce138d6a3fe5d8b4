"""Audit package

Modules:
- findings: Finding, MeasurementRun and the deduplicating FindingStore.
- aggregator: runs measurement passes and builds the AggregatedReport.
- psi, lighthouse: audit engines (PageSpeed Insights API, local Lighthouse CLI).
- runner: one full analysis, from measurement to stored report.
"""
