from vidhanto.estamp.rates import default_stamp_value, rate_for, rates_for_state


def test_state_specific_rates():
    assert rates_for_state("Bihar") == {"judicial": 0.015, "non_judicial": 0.006}
    assert rates_for_state("Assam")["judicial"] == 0.008


def test_unknown_state_uses_default_rates():
    assert rates_for_state("Maharashtra") == {"judicial": 0.01, "non_judicial": 0.005}


def test_non_judicial_types_use_non_judicial_rate():
    assert rate_for("Bihar", "judicial") == 0.015
    assert rate_for("Bihar", "non-judicial") == 0.006
    assert rate_for("Bihar", "revenue") == 0.006


def test_default_stamp_value():
    assert default_stamp_value("Maharashtra", "judicial") == 10.0
    assert default_stamp_value("Bihar", "non-judicial") == 6.0


def test_rates_are_copies():
    rates = rates_for_state("Bihar")
    rates["judicial"] = 1
    assert rates_for_state("Bihar")["judicial"] == 0.015
