import pytest

from price_alert.config import ConfigError, config_from_env

BASE = {"TELEGRAM_BOT_TOKEN": "123:abc", "TELEGRAM_CHAT_ID": "987654"}

def test_defaults():
    cfg = config_from_env(dict(BASE))
    assert cfg.chat_id == 987654
    assert cfg.symbol == "BTCUSDT"
    assert cfg.threshold_price == 92000.0
    assert cfg.notify_greater is False
    assert cfg.poll_interval_s == 60.0
    assert cfg.repeat_policy == "every_cycle"
    assert cfg.startup_ping is False

def test_overrides():
    env = dict(BASE, SYMBOL="ethusdt", THRESHOLD_PRICE="3000.5", THRESHOLD_DIRECTION=">",
               POLL_INTERVAL_S="15", REPEAT_POLICY="once_until_reset", STARTUP_PING="yes")
    cfg = config_from_env(env)
    assert cfg.symbol == "ETHUSDT"
    assert (cfg.threshold_price, cfg.notify_greater) == (3000.5, True)
    assert cfg.poll_interval_s == 15.0
    assert cfg.repeat_policy == "once_until_reset"
    assert cfg.startup_ping is True

@pytest.mark.parametrize("env", [
    {},
    {"TELEGRAM_BOT_TOKEN": "123:abc"},
    dict(BASE, TELEGRAM_CHAT_ID="not-a-number"),
    dict(BASE, THRESHOLD_DIRECTION="="),
    dict(BASE, THRESHOLD_PRICE="lots"),
    dict(BASE, THRESHOLD_PRICE="inf"),
    dict(BASE, POLL_INTERVAL_S="0"),
    dict(BASE, REPEAT_POLICY="sometimes"),
])
def test_invalid_config(env):
    with pytest.raises(ConfigError):
        config_from_env(env)
