"""
US federal fiscal calendar helpers (fiscal year ends 30 September).
"""

from __future__ import annotations

from datetime import date

FY_END_MONTH = 9
FY_END_DAY = 30


def fiscal_year(today: date) -> str:
    """FY label; October onwards belongs to the next year's FY."""
    return str(today.year + 1 if today.month >= 10 else today.year)


def fiscal_quarter(today: date) -> str:
    if today.month >= 10:
        return "Q1"
    if today.month <= 3:
        return "Q2"
    if today.month <= 6:
        return "Q3"
    return "Q4"


def is_end_of_fiscal_year(today: date) -> bool:
    # August and September are the year-end spending rush
    return today.month in (8, 9)


def days_until_fiscal_year_end(today: date) -> int:
    year = today.year + 1 if today.month >= 10 else today.year
    return (date(year, FY_END_MONTH, FY_END_DAY) - today).days
