from __future__ import annotations

import pytest

from hostpulse.utils.durations import DurationError, format_duration, parse_duration


@pytest.mark.parametrize(
    ("text", "seconds"),
    [
        ("60s", 60.0),
        ("1m30s", 90.0),
        ("250ms", 0.25),
        ("1.5h", 5400.0),
        ("2h45m", 9900.0),
        ("0", 0.0),
        ("-1s", -1.0),
        (" 30s ", 30.0),
        (45, 45.0),
        (0.5, 0.5),
    ],
)
def test_parse_duration(text, seconds: float) -> None:
    assert parse_duration(text) == pytest.approx(seconds)


def test_parse_sub_millisecond_units() -> None:
    assert parse_duration("1500us") == pytest.approx(0.0015)
    assert parse_duration("1500µs") == pytest.approx(0.0015)
    assert parse_duration("10ns") == pytest.approx(1e-8)


@pytest.mark.parametrize("text", ["", "abc", "10", "1x", "s", "5s5", "-", True, None, [1]])
def test_parse_duration_rejects_garbage(text) -> None:
    with pytest.raises(DurationError):
        parse_duration(text)


@pytest.mark.parametrize(
    ("seconds", "text"),
    [(0, "0s"), (0.25, "250ms"), (45, "45s"), (60, "1m"), (90, "1m30s"), (3600, "1h"), (5400, "1h30m")],
)
def test_format_duration(seconds: float, text: str) -> None:
    assert format_duration(seconds) == text
