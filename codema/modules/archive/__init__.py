from codema.modules.archive.models import (
    ArchiveDocument,
    DocumentCategory,
    DocumentStatus,
    DocumentType,
)
from codema.modules.archive.service import ArchiveService

__all__ = [
    "ArchiveDocument",
    "ArchiveService",
    "DocumentCategory",
    "DocumentStatus",
    "DocumentType",
]
