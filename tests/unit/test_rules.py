import pytest

from price_alert.alerts.rules import should_fire, direction_word, condition_phrase
from price_alert.alerts.state import AlertState

@pytest.mark.parametrize("price,expected", [(91000.0, True), (93000.0, False), (92000.0, False)])
def test_less_than_threshold(price, expected):
    assert should_fire(price, AlertState(92000.0, False)) is expected

@pytest.mark.parametrize("price,expected", [(93000.0, True), (91000.0, False), (92000.0, False)])
def test_greater_than_threshold(price, expected):
    assert should_fire(price, AlertState(92000.0, True)) is expected

def test_direction_words():
    assert direction_word(True) == "above"
    assert direction_word(False) == "below"
    assert condition_phrase(True) == "greater than"
    assert condition_phrase(False) == "less than"
