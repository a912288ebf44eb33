from trun.utils.fmt import format_distance, format_duration, format_pace, pace_seconds_per_km


def test_format_distance():
    assert format_distance(0) == "0m"
    assert format_distance(532.4) == "532m"
    assert format_distance(532.5) == "533m"
    assert format_distance(1234) == "1.23km"


def test_format_duration():
    assert format_duration(0) == "00:00"
    assert format_duration(65) == "01:05"
    assert format_duration(3725) == "1:02:05"


def test_pace_needs_minimum_distance():
    assert pace_seconds_per_km(5, 100) is None
    assert format_pace(5, 100) == "--:--"


def test_format_pace():
    assert pace_seconds_per_km(1000, 300) == 300
    assert format_pace(1000, 300) == "5:00"
    assert format_pace(2000, 645) == "5:23"


def test_format_pace_rounds_up_to_next_minute():
    # 359.8 s/km rounds to 6:00, not 5:60
    assert format_pace(1000, 359.8) == "6:00"
