"""Schemas for the executive dashboard."""

from datetime import date

from codema.shared.schemas import BaseSchema


class MeetingMetrics(BaseSchema):
    total: int = 0
    held: int = 0
    with_quorum: int = 0
    upcoming: int = 0
    cancelled: int = 0


class MinutesMetrics(BaseSchema):
    total: int = 0
    pending: int = 0
    approved: int = 0
    approval_rate_percent: float | None = None  # 0-100, None when no minutes


class ResolutionMetrics(BaseSchema):
    total: int = 0
    approved: int = 0
    rejected: int = 0
    published: int = 0
    revoked: int = 0


class ComplaintMetrics(BaseSchema):
    total: int = 0
    open: int = 0
    concluded: int = 0
    upheld: int = 0


class DashboardResponse(BaseSchema):
    """Executive summary for the council's main page."""

    meetings: MeetingMetrics
    minutes: MinutesMetrics
    resolutions: ResolutionMetrics
    complaints: ComplaintMetrics
    active_councillors: int = 0
    protocols_issued_this_year: int = 0
    provisional_protocols: int = 0

    date_from: date | None = None
    date_to: date | None = None
    current_year: int = 0
