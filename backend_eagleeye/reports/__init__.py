"""Report assembly: summary totals, insights and recommendations over wallet results."""

from backend_eagleeye.reports.report_assembler import Report, ReportSummary, assemble_report

__all__ = ["Report", "ReportSummary", "assemble_report"]
