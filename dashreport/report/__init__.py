"""Report pipeline: fetch panel images, lay them out, write the PDF."""

from dashreport.report.artifact_store import ArtifactStore
from dashreport.report.orchestrator import Report, ReportError, ReportState

__all__ = ["ArtifactStore", "Report", "ReportError", "ReportState"]
