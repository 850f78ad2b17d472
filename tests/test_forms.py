"""New-record constructor and map-click prefill."""

import pytest

from errors import InvalidSignalForm
from forms import build_signal, clamp_radius, draft_from_click, parse_number


def test_builds_full_record():
    record = build_signal({
        "frequency": "439,5",
        "city": " Prague ",
        "description": "OK0A",
        "type": "DMR",
        "lat": "50.0755",
        "lon": 14.4378,
        "radius_km": "25",
    }, timestamp=123)

    assert record == {
        "frequency": 439.5,
        "city": "Prague",
        "description": "OK0A",
        "type": "DMR",
        "color": "red",
        "lat": 50.0755,
        "lon": 14.4378,
        "radius_km": 25.0,
        "timestamp": 123,
    }


def test_explicit_color_is_kept():
    assert build_signal({"frequency": 1, "type": "DMR", "color": "orange"})["color"] == "orange"


def test_timestamp_defaults_to_now():
    assert build_signal({"frequency": 1})["timestamp"] > 1_600_000_000_000


@pytest.mark.parametrize("frequency", [None, "", "  "])
def test_frequency_required(frequency):
    with pytest.raises(InvalidSignalForm) as exc:
        build_signal({"frequency": frequency})
    assert exc.value.field == "frequency"


def test_frequency_must_be_numeric():
    with pytest.raises(InvalidSignalForm):
        build_signal({"frequency": "abc"})


@pytest.mark.parametrize("radius,expected", [("0", 1.0), (500, 80.0), (12.5, 12.5)])
def test_radius_is_clamped(radius, expected):
    assert build_signal({"frequency": 1, "radius_km": radius})["radius_km"] == expected
    assert clamp_radius(float(radius)) == expected


def test_no_radius_no_circle():
    assert "radius_km" not in build_signal({"frequency": 1})


def test_half_position_is_dropped():
    record = build_signal({"frequency": 1, "lat": 50.0})
    assert "lat" not in record and "lon" not in record


def test_out_of_range_latitude():
    with pytest.raises(InvalidSignalForm) as exc:
        build_signal({"frequency": 1, "lat": 95, "lon": 14})
    assert exc.value.field == "lat"


def test_parse_number():
    assert parse_number("1,25") == 1.25
    assert parse_number(None) is None
    with pytest.raises(ValueError):
        parse_number("nan")


def test_draft_from_click_rounds_position():
    draft = draft_from_click("50.07551234", "14.43781299")
    assert draft["lat"] == 50.075512
    assert draft["lon"] == 14.437813
    assert draft["frequency"] == ""


def test_draft_requires_both_coordinates():
    with pytest.raises(InvalidSignalForm):
        draft_from_click("50.0", None)


@pytest.mark.parametrize("lat,lon", [("90.5", "14"), ("50", "180.01"), (-91, 0)])
def test_draft_range_checks_match_create(lat, lon):
    with pytest.raises(InvalidSignalForm):
        draft_from_click(lat, lon)
    with pytest.raises(InvalidSignalForm):
        build_signal({"frequency": 1, "lat": lat, "lon": lon})
