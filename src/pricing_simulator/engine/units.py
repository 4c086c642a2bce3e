"""
Unit classification - billing frequency of a pricing unit.
"""

# Units that are calculated once (one-time charges)
ONE_TIME_UNITS = ('Per Project', 'Per Setup')

# Units that are calculated monthly (recurring charges)
MONTHLY_RECURRING_UNITS = ('Per User',)

# Units that are calculated per transaction or token
TRANSACTION_BASED_UNITS = ('Per Transaction',)

# Units that are calculated per event or activity
EVENT_ACTIVITY_BASED_UNITS = ('Per Card', 'Per Item')

ONE_TIME = 'one-time'
MONTHLY_RECURRING = 'monthly-recurring'
TRANSACTION_BASED = 'transaction-based'
EVENT_ACTIVITY_BASED = 'event-activity-based'
UNKNOWN = 'unknown'

_DESCRIPTIONS = {
    ONE_TIME: 'Calculated once (setup fees, configurations, changes)',
    MONTHLY_RECURRING: 'Calculated per month (service fees, hosting, user access)',
    TRANSACTION_BASED: 'Calculated per transaction or token (processing, API calls, SMS)',
    EVENT_ACTIVITY_BASED: 'Calculated per event (card creation, deliveries, files, cases)',
    UNKNOWN: 'Unknown billing frequency',
}


def _normalize(unit: str) -> str:
    return (unit or '').strip().lower()


def _in(unit: str, units) -> bool:
    return _normalize(unit) in {_normalize(u) for u in units}


def is_one_time_unit(unit: str, one_time_units=ONE_TIME_UNITS) -> bool:
    """Determines if a unit represents a one-time charge (case-insensitive)."""
    return _in(unit, one_time_units)


def get_unit_category(unit: str) -> str:
    if _in(unit, ONE_TIME_UNITS):
        return ONE_TIME
    if _in(unit, MONTHLY_RECURRING_UNITS):
        return MONTHLY_RECURRING
    if _in(unit, TRANSACTION_BASED_UNITS):
        return TRANSACTION_BASED
    if _in(unit, EVENT_ACTIVITY_BASED_UNITS):
        return EVENT_ACTIVITY_BASED
    return UNKNOWN


def get_unit_category_description(unit: str) -> str:
    return _DESCRIPTIONS[get_unit_category(unit)]
