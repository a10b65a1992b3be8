"""Database model exports."""

from .analytics import DailyAnalytics, PeriodAnalytics, PnLColumnsMixin, SymbolAnalytics

__all__ = [
    "PnLColumnsMixin",
    "DailyAnalytics",
    "PeriodAnalytics",
    "SymbolAnalytics",
]
