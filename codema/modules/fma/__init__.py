from codema.modules.fma.models import (
    ExpenseStatus,
    FundProject,
    FundRevenue,
    ProjectAction,
    ProjectExpense,
    ProjectStatus,
    RevenueStatus,
)
from codema.modules.fma.service import FundService

__all__ = [
    "ExpenseStatus",
    "FundProject",
    "FundRevenue",
    "ProjectAction",
    "ProjectExpense",
    "ProjectStatus",
    "RevenueStatus",
    "FundService",
]
