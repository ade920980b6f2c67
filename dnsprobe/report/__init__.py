from dnsprobe.report.builder import Report, ReportRow, build_report, render_markdown, to_json, write_report

__all__ = ["Report", "ReportRow", "build_report", "render_markdown", "to_json", "write_report"]
