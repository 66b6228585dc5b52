from codema.modules.reports.models import (
    CitizenReport,
    ReportCategory,
    ReportPriority,
    ReportStatus,
)
from codema.modules.reports.service import ReportService

__all__ = [
    "CitizenReport",
    "ReportCategory",
    "ReportPriority",
    "ReportStatus",
    "ReportService",
]
