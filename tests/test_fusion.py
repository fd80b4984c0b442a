import pytest

from core.kilnctl.fusion import AMBIENT_TEMPERATURE, SensorFusion


def test_ambient_before_any_reading():
    fusion = SensorFusion()
    assert fusion.temperature == AMBIENT_TEMPERATURE
    assert "T1" not in fusion.computed


def test_first_reading_seeds_sensor():
    fusion = SensorFusion()
    assert fusion.observe("T1", 10000)
    assert fusion.computed["T1"] == pytest.approx(100.0)
    assert fusion.temperature == pytest.approx(100.0)


def test_later_readings_are_smoothed():
    fusion = SensorFusion()
    fusion.observe("T1", 10000)
    fusion.observe("T1", 20000)
    assert fusion.computed["T1"] == pytest.approx(100 * 4 / 5 + 200 / 5)


def test_temperature_is_mean_of_present_sensors():
    fusion = SensorFusion()
    fusion.observe("T1", 10000)
    fusion.observe("T3", 30000)
    assert fusion.temperature == pytest.approx(200.0)

    fusion.observe("T2", 5000)
    expected = (fusion.computed["T1"] + fusion.computed["T2"] + fusion.computed["T3"]) / 3
    assert fusion.temperature == pytest.approx(expected)


def test_unfused_temperature_register_does_not_recompute():
    fusion = SensorFusion()
    assert not fusion.observe("T4", 50000)
    assert fusion.computed["T4"] == pytest.approx(500.0)
    assert fusion.temperature == AMBIENT_TEMPERATURE


def test_non_temperature_registers_ignored():
    fusion = SensorFusion()
    assert not fusion.observe("R", 1)
    assert "R" not in fusion.computed


def test_repeated_value_converges_monotonically():
    fusion = SensorFusion()
    fusion.observe("T1", 2000)

    previous = fusion.computed["T1"]
    for _ in range(100):
        fusion.observe("T1", 50000)
        current = fusion.computed["T1"]
        assert current >= previous
        previous = current

    assert fusion.computed["T1"] == pytest.approx(500.0, abs=1e-6)


def test_identical_readings_are_stable():
    fusion = SensorFusion()
    for _ in range(5):
        fusion.observe("T1", 12345)
    assert fusion.computed["T1"] == pytest.approx(123.45)
