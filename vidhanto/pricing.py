"""Money and rating arithmetic shared by the workflow models.

Amounts are whole rupees. Rounding is half-up, so a fee of 25 carries a
platform fee of 3, not the 2 that Python's banker's rounding would give.
"""
import math

PLATFORM_FEE_RATE = 0.10
GST_RATE = 0.18
REFUND_PROCESSING_FEE_RATE = 0.02
APPOINTMENT_LAWYER_SHARE = 0.90


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def platform_fee(consultation_fee: int) -> int:
    return round_half_up((consultation_fee or 0) * PLATFORM_FEE_RATE)


def document_tax(base_price: int, additional_charges: int) -> int:
    return round_half_up(((base_price or 0) + (additional_charges or 0)) * GST_RATE)


def refund_processing_fee(amount: int) -> int:
    return round_half_up(amount * REFUND_PROCESSING_FEE_RATE)


def max_refund(amount: int) -> int:
    return max(0, amount - refund_processing_fee(amount))


def appointment_breakdown(amount: int) -> dict:
    return {
        "consultation_fee": round_half_up(amount * APPOINTMENT_LAWYER_SHARE),
        "platform_fee": round_half_up(amount * PLATFORM_FEE_RATE),
    }


def running_average(current_average: float, count: int, rating: int) -> float:
    """Fold one more rating into an average, rounded to one decimal."""
    total = (current_average or 0) * (count or 0) + rating
    return round_half_up(total / ((count or 0) + 1) * 10) / 10


def ai_token_cost(total_tokens: int) -> float:
    # USD 0.0001 per 1000 tokens
    return round(total_tokens / 1000 * 0.0001, 6)
