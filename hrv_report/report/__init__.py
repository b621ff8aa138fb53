"""Prompt contract, output extraction, validation, fallbacks and the pipeline."""

from hrv_report.report.report_generator import (
    GenerateReportRequest,
    ReportPipeline,
    ReportResult,
    build_report_view,
)

__all__ = [
    "GenerateReportRequest",
    "ReportPipeline",
    "ReportResult",
    "build_report_view",
]
