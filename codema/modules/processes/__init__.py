from codema.modules.processes.models import (
    EnvironmentalProcess,
    ProcessAction,
    ProcessPriority,
    ProcessStatus,
    ProcessType,
)
from codema.modules.processes.service import ProcessService

__all__ = [
    "EnvironmentalProcess",
    "ProcessAction",
    "ProcessPriority",
    "ProcessStatus",
    "ProcessType",
    "ProcessService",
]
