"""Stamp duty rates by state, as a fraction of the instrument value."""
from vidhanto.models import StampType

DEFAULT_RATES = {"judicial": 0.01, "non_judicial": 0.005}

STATE_RATES = {
    "Assam": {"judicial": 0.008, "non_judicial": 0.004},
    "Manipur": {"judicial": 0.008, "non_judicial": 0.004},
    "Meghalaya": {"judicial": 0.008, "non_judicial": 0.004},
    "Mizoram": {"judicial": 0.008, "non_judicial": 0.004},
    "Nagaland": {"judicial": 0.008, "non_judicial": 0.004},
    "Sikkim": {"judicial": 0.008, "non_judicial": 0.004},
    "Tripura": {"judicial": 0.008, "non_judicial": 0.004},
    "Bihar": {"judicial": 0.015, "non_judicial": 0.006},
}

# Stamp value charged when the caller does not supply one
DEFAULT_INSTRUMENT_VALUE = 1000


def rates_for_state(state: str) -> dict:
    return dict(STATE_RATES.get(state, DEFAULT_RATES))


def rate_for(state: str, stamp_type) -> float:
    rates = rates_for_state(state)
    if StampType(stamp_type) == StampType.JUDICIAL:
        return rates["judicial"]
    return rates["non_judicial"]


def default_stamp_value(state: str, stamp_type) -> float:
    return round(rate_for(state, stamp_type) * DEFAULT_INSTRUMENT_VALUE, 2)
