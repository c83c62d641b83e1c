"""Date dimension with the Brazilian holiday and retail calendar.

One row per day in ``[start, end)``. ``date_key`` is the YYYYMMDD integer.
The fiscal year starts on July 1: July-December belong to the next fiscal
year.

Carnaval and Good Friday follow one of two rules:

* ``fixed_offset`` keeps the historical warehouse output: Carnaval Monday is
  April 1 minus 46 days, Carnaval Tuesday April 1 minus 47 days and Good
  Friday April 1 minus 2 days, every year.
* ``easter`` derives them from Easter Sunday (Monday = Easter - 48,
  Tuesday = Easter - 47, Good Friday = Easter - 2).
"""
from datetime import date, timedelta

import pandas as pd

CARNAVAL_RULES = ("fixed_offset", "easter")

FIXED_HOLIDAYS = {
    (1, 1): "New Year",
    (4, 21): "Tiradentes",
    (5, 1): "Labor Day",
    (9, 7): "Independence Day",
    (10, 12): "Children's Day",
    (11, 2): "All Souls' Day",
    (11, 15): "Republic Proclamation Day",
    (12, 25): "Christmas",
}

VALENTINES_DAY = (6, 12)   # Dia dos Namorados
CHILDRENS_DAY = (10, 12)
CONSUMERS_DAY = (3, 15)

DIM_DATE_COLUMNS = [
    "date_key", "full_date", "year", "year_text", "quarter_number", "quarter",
    "month_number", "month_text", "month_name_full", "month_name_short",
    "week_number_iso", "week_text", "day_of_month", "day_of_year",
    "day_name_full", "day_name_short", "is_weekend", "is_weekday",
    "is_brazilian_holiday", "holiday_name", "is_black_friday", "is_mothers_day",
    "is_valentines_day", "is_childrens_day", "is_consumers_day",
    "fiscal_year", "fiscal_quarter",
]

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June", "July",
    "August", "September", "October", "November", "December",
]
DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def easter_sunday(year: int) -> date:
    """Gregorian Easter (anonymous computus)."""
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month, day = divmod(h + l - 7 * m + 114, 31)
    return date(year, month, day + 1)


def nth_weekday(year: int, month: int, weekday: int, n: int) -> date:
    """n-th ``weekday`` (Monday=0) of the month."""
    first = date(year, month, 1)
    offset = (weekday - first.weekday()) % 7
    return first + timedelta(days=offset + 7 * (n - 1))


def black_friday(year: int) -> date:
    """The Friday after the fourth Thursday of November (Thanksgiving).

    Equal to the fourth Friday unless November starts on a Friday.
    """
    return nth_weekday(year, 11, 3, 4) + timedelta(days=1)


def mothers_day(year: int) -> date:
    return nth_weekday(year, 5, 6, 2)


def moving_holidays(year: int, carnaval_rule: str = "fixed_offset") -> dict:
    if carnaval_rule == "fixed_offset":
        anchor = date(year, 4, 1)
        return {
            anchor - timedelta(days=46): "Carnaval Monday",
            anchor - timedelta(days=47): "Carnaval Tuesday",
            anchor - timedelta(days=2): "Good Friday",
        }
    if carnaval_rule == "easter":
        easter = easter_sunday(year)
        return {
            easter - timedelta(days=48): "Carnaval Monday",
            easter - timedelta(days=47): "Carnaval Tuesday",
            easter - timedelta(days=2): "Good Friday",
        }
    raise ValueError(f"Unknown carnaval rule '{carnaval_rule}'. Expected one of {CARNAVAL_RULES}")


def holiday_name(day: date, moving: dict):
    fixed = FIXED_HOLIDAYS.get((day.month, day.day))
    if day.month == 1 and day.day == 1:
        return fixed
    # a moving holiday wins over a fixed one on the same day
    return moving.get(day) or fixed


def fiscal_period(day: date):
    fiscal_year = day.year + 1 if day.month >= 7 else day.year
    fiscal_quarter = f"FQ{((day.month - 7) % 12) // 3 + 1}"
    return fiscal_year, fiscal_quarter


def generate_date_dimension(start="2016-01-01", end="2020-01-01",
                            carnaval_rule: str = "fixed_offset") -> pd.DataFrame:
    if carnaval_rule not in CARNAVAL_RULES:
        raise ValueError(f"Unknown carnaval rule '{carnaval_rule}'. Expected one of {CARNAVAL_RULES}")
    days = pd.date_range(start=start, end=end, freq="D", inclusive="left")

    by_year = {}
    rows = []
    for ts in days:
        d = ts.date()
        if d.year not in by_year:
            by_year[d.year] = (
                moving_holidays(d.year, carnaval_rule),
                black_friday(d.year),
                mothers_day(d.year),
            )
        moving, bf, md = by_year[d.year]
        iso_week = d.isocalendar()[1]
        quarter_number = (d.month - 1) // 3 + 1
        name = holiday_name(d, moving)
        weekend = d.weekday() >= 5
        fiscal_year, fiscal_quarter = fiscal_period(d)
        rows.append({
            "date_key": d.year * 10000 + d.month * 100 + d.day,
            "full_date": ts,
            "year": d.year,
            "year_text": f"{d.year:04d}",
            "quarter_number": quarter_number,
            "quarter": f"Q{quarter_number}",
            "month_number": d.month,
            "month_text": f"{d.month:02d}",
            "month_name_full": MONTH_NAMES[d.month - 1],
            "month_name_short": MONTH_NAMES[d.month - 1][:3],
            "week_number_iso": iso_week,
            "week_text": f"W{iso_week:02d}",
            "day_of_month": d.day,
            "day_of_year": d.timetuple().tm_yday,
            "day_name_full": DAY_NAMES[d.weekday()],
            "day_name_short": DAY_NAMES[d.weekday()][:3],
            "is_weekend": weekend,
            "is_weekday": not weekend,
            "is_brazilian_holiday": name is not None,
            "holiday_name": name,
            "is_black_friday": d == bf,
            "is_mothers_day": d == md,
            "is_valentines_day": (d.month, d.day) == VALENTINES_DAY,
            "is_childrens_day": (d.month, d.day) == CHILDRENS_DAY,
            "is_consumers_day": (d.month, d.day) == CONSUMERS_DAY,
            "fiscal_year": fiscal_year,
            "fiscal_quarter": fiscal_quarter,
        })
    return pd.DataFrame(rows, columns=DIM_DATE_COLUMNS)
