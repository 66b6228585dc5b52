from codema.modules.resolutions.models import Resolution, ResolutionStatus
from codema.modules.resolutions.service import ResolutionService

__all__ = ["Resolution", "ResolutionService", "ResolutionStatus"]
