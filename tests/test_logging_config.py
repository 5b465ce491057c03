import logging

from logging_config import ContextualFormatter, build_logging_config


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="services.decoder",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="Rejected frame",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_renders_station_context() -> None:
    formatter = ContextualFormatter(fmt="%(message)s")

    line = formatter.format(_record(channel="humidity", address=0x40, elapsed_ms=12.345))

    assert line == "Rejected frame | channel=humidity address=0x40 elapsed_ms=12.3"


def test_formatter_skips_missing_context() -> None:
    formatter = ContextualFormatter(fmt="%(message)s")

    assert formatter.format(_record(reason=None)) == "Rejected frame"


def test_formatter_honours_custom_keys() -> None:
    formatter = ContextualFormatter(fmt="%(message)s", context_keys=["peer"])

    line = formatter.format(_record(peer="127.0.0.1:5000", channel="pressure"))

    assert line == "Rejected frame | peer=127.0.0.1:5000"


def test_logging_config_quiets_http_client_loggers() -> None:
    config = build_logging_config("DEBUG")

    assert config["root"]["level"] == "DEBUG"
    assert config["loggers"]["httpx"]["level"] == "WARNING"
    assert config["formatters"]["station"]["()"] == "logging_config.ContextualFormatter"
