# perfreport/services/estimator.py
"""
Money model for a remediation plan.

Pure functions, no I/O. Bad numeric input turns into NaN in the output
instead of raising; the report serializer writes NaN as null.
"""
import logging
import math
import re
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Sequence

logger = logging.getLogger(__name__)

ADS_PER_PAGE_COEFFICIENTS = (1, 1.7, 2.4, 2.8, 3.4)

# Calendar scaling of the income model: days per month, months per year.
DAYS_PER_MONTH = 30
MONTHS_PER_YEAR = 12

# A comma followed by exactly three digits groups thousands ("1,000"); any
# other comma is a decimal mark ("2,5").
_NUMBER = re.compile(r"(?P<grouped>-?\d{1,3}(?:,\d{3})+(?!\d)(?:\.\d+)?)|(?P<plain>-?\d+(?:[.,]\d+)?)")


@dataclass(frozen=True)
class SavingsEstimate:
    work_cost: float
    potential_income_increase: float
    potential_revenue_gain: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "workCost": self.work_cost,
            "potentialIncomeIncrease": self.potential_income_increase,
            "potentialRevenueGain": self.potential_revenue_gain,
        }


def _num(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def work_cost(total_hours, developer_rate) -> float:
    return _num(total_hours) * _num(developer_rate)


def ads_coefficient(ads_per_page, table: Sequence[float] = ADS_PER_PAGE_COEFFICIENTS) -> float:
    ads = _num(ads_per_page)
    if math.isnan(ads):
        return math.nan
    if ads > len(table):
        return table[-1]
    if ads < 1:
        return table[0]
    return table[int(ads) - 1]


def current_income(visitor_quantity, pages_per_visit, ads_coef) -> float:
    return DAYS_PER_MONTH * _num(visitor_quantity) / 10000 * _num(pages_per_visit) * _num(ads_coef) * MONTHS_PER_YEAR


def potential_income_increase(income, income_cost_coefficient, total_blocking_time) -> float:
    return _num(income) * _num(income_cost_coefficient) / 100 * _num(total_blocking_time) / 1000


def potential_revenue_gain(largest_contentful_paint, income_cost_coefficient) -> float:
    return _num(largest_contentful_paint) / 1000 * _num(income_cost_coefficient)


def parse_hours(raw: Optional[str]) -> Optional[float]:
    """
    Read an hour count out of a completion like '16' or '16 hours'.
    NaN and infinities are not hour counts and give None.
    """
    if raw is None:
        return None
    text = str(raw).strip()
    try:
        value = float(text)
    except ValueError:
        pass
    else:
        return value if math.isfinite(value) else None
    m = _NUMBER.search(text)
    if not m:
        return None
    if m.group("grouped"):
        return float(m.group("grouped").replace(",", ""))
    return float(m.group("plain").replace(",", "."))


def total_estimate_hours(estimates: Iterable[Optional[str]]) -> float:
    total = 0.0
    for raw in estimates:
        hours = parse_hours(raw)
        if hours is None:
            if raw is not None:
                logger.warning("Could not parse estimate %r, counting 0 hours", raw)
            continue
        total += hours
    return total


def average_score(scores: Sequence[Optional[float]]) -> Optional[float]:
    """Mean of [0,1] scores as a 0..100 value. Unscored runs are skipped."""
    values = [s for s in scores if s is not None]
    if not values:
        return None
    return sum(values) / len(values) * 100


def calculate_savings(
    *,
    visitor_quantity,
    total_hours,
    pages_per_visit,
    ads_per_page,
    total_blocking_time,
    largest_contentful_paint,
    developer_rate,
    income_cost_coefficient,
) -> SavingsEstimate:
    income = current_income(visitor_quantity, pages_per_visit, ads_coefficient(ads_per_page))
    return SavingsEstimate(
        work_cost=work_cost(total_hours, developer_rate),
        potential_income_increase=potential_income_increase(income, income_cost_coefficient, total_blocking_time),
        potential_revenue_gain=potential_revenue_gain(largest_contentful_paint, income_cost_coefficient),
    )
