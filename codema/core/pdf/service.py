"""PDF generation (attendance lists, meeting minutes) from HTML templates."""

from datetime import datetime
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from codema.core.exceptions import PdfGenerationUnavailableError

TEMPLATE_DIR = Path(__file__).resolve().parent.parent.parent / "templates" / "pdf"


def _format_datetime(value: datetime | None, fmt: str = "%d/%m/%Y %H:%M") -> str:
    if value is None:
        return ""
    return value.strftime(fmt)


class PDFService:
    """Generate PDF documents from Jinja2 templates and WeasyPrint."""

    def __init__(self) -> None:
        self._env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=True,
        )
        self._env.filters["datetime"] = _format_datetime

    def render_html(self, template_name: str, context: dict) -> str:
        return self._env.get_template(template_name).render(**context)

    def _write_pdf(self, html_content: str) -> bytes:
        try:
            from weasyprint import HTML
        except (OSError, ImportError) as e:
            raise PdfGenerationUnavailableError(
                f"PDF generation unavailable (WeasyPrint/system libs). {e!s}"
            ) from e
        try:
            return HTML(string=html_content).write_pdf()
        except Exception as e:
            raise PdfGenerationUnavailableError(str(e)) from e

    def generate_attendance_list_pdf(self, context: dict) -> bytes:
        """Render the attendance list (A4 landscape) and return PDF bytes."""
        return self._write_pdf(self.render_html("attendance_list.html", context))

    def generate_minutes_pdf(self, context: dict) -> bytes:
        """Render meeting minutes and return PDF bytes."""
        return self._write_pdf(self.render_html("minutes.html", context))


pdf_service = PDFService()
