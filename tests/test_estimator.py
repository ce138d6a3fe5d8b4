import math

import pytest

from perfreport.services.estimator import (
    ads_coefficient,
    average_score,
    calculate_savings,
    current_income,
    parse_hours,
    potential_income_increase,
    potential_revenue_gain,
    total_estimate_hours,
    work_cost,
)


@pytest.mark.parametrize("ads, expected", [(1, 1), (2, 1.7), (3, 2.4), (4, 2.8), (5, 3.4), (10, 3.4)])
def test_ads_coefficient(ads, expected):
    assert ads_coefficient(ads) == expected


@pytest.mark.parametrize("ads", [0, -3])
def test_ads_coefficient_clamps_low_values_to_first_entry(ads):
    assert ads_coefficient(ads) == 1


def test_ads_coefficient_of_garbage_is_nan():
    assert math.isnan(ads_coefficient("many"))


def test_money_model_reference_values():
    income = current_income(10000, 3, ads_coefficient(2))
    assert income == pytest.approx(1836)
    assert work_cost(8, 50) == 400
    assert potential_income_increase(income, 10, 500) == pytest.approx(91.8)
    assert potential_revenue_gain(2000, 10) == pytest.approx(20)


def test_calculate_savings():
    money = calculate_savings(
        visitor_quantity=10000,
        total_hours=8,
        pages_per_visit=3,
        ads_per_page=2,
        total_blocking_time=500,
        largest_contentful_paint=2000,
        developer_rate=50,
        income_cost_coefficient=10,
    )
    assert money.work_cost == 400
    assert money.potential_income_increase == pytest.approx(91.8)
    assert money.potential_revenue_gain == pytest.approx(20)
    assert set(money.to_dict()) == {"workCost", "potentialIncomeIncrease", "potentialRevenueGain"}


def test_missing_business_input_propagates_nan():
    money = calculate_savings(
        visitor_quantity=None,
        total_hours=8,
        pages_per_visit=3,
        ads_per_page=2,
        total_blocking_time=500,
        largest_contentful_paint=2000,
        developer_rate=50,
        income_cost_coefficient=10,
    )
    assert math.isnan(money.potential_income_increase)
    assert money.work_cost == 400


@pytest.mark.parametrize(
    "raw, hours",
    [
        ("16", 16.0),
        (" 4.5\n", 4.5),
        ("24 hours", 24.0),
        ("about 2,5h", 2.5),
        ("2,5", 2.5),
        ("1,000 hours", 1000.0),
        ("roughly 12,500.5 h", 12500.5),
        ("1,0000", 1.0),
    ],
)
def test_parse_hours(raw, hours):
    assert parse_hours(raw) == hours


def test_parse_hours_without_number():
    assert parse_hours("It depends") is None
    assert parse_hours(None) is None


def test_total_estimate_hours_skips_failures():
    assert total_estimate_hours(["8", None, "4 hours", "n/a"]) == 12


def test_average_score():
    assert average_score([0.5, 0.7]) == pytest.approx(60)
    assert average_score([0.9, None]) == pytest.approx(90)
    assert average_score([]) is None


@pytest.mark.parametrize("raw", ["NaN", "nan", "inf", "-inf", "Infinity", "infinity hours"])
def test_parse_hours_rejects_non_finite_values(raw):
    assert parse_hours(raw) is None


def test_total_estimate_hours_ignores_non_finite_and_reads_thousands():
    assert total_estimate_hours(["8", "NaN", "1,000 hours", "inf"]) == 1008
