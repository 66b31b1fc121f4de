import pytest

from vidhanto import pricing


@pytest.mark.parametrize("value,expected", [(2.5, 3), (2.4, 2), (0.5, 1), (0, 0), (89.99, 90)])
def test_round_half_up(value, expected):
    assert pricing.round_half_up(value) == expected


def test_platform_fee_is_ten_percent_rounded_half_up():
    assert pricing.platform_fee(1000) == 100
    assert pricing.platform_fee(25) == 3
    assert pricing.platform_fee(0) == 0
    assert pricing.platform_fee(None) == 0


def test_document_tax_is_gst_on_base_and_additional():
    assert pricing.document_tax(1000, 500) == 270
    assert pricing.document_tax(1000, None) == 180


def test_max_refund_keeps_processing_fee():
    assert pricing.refund_processing_fee(1000) == 20
    assert pricing.max_refund(1000) == 980
    assert pricing.max_refund(25) == 24
    assert pricing.max_refund(0) == 0


def test_appointment_breakdown_splits_amount():
    assert pricing.appointment_breakdown(1100) == {"consultation_fee": 990, "platform_fee": 110}


def test_running_average_rounds_to_one_decimal():
    assert pricing.running_average(0, 0, 5) == 5.0
    assert pricing.running_average(4.0, 2, 5) == 4.3
    assert pricing.running_average(None, None, 3) == 3.0


def test_ai_token_cost():
    assert pricing.ai_token_cost(1000) == pytest.approx(0.0001)
    assert pricing.ai_token_cost(0) == 0
