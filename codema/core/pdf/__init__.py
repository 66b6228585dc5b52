from codema.core.pdf.service import PDFService, pdf_service

__all__ = ["PDFService", "pdf_service"]
