import math

import numpy as np
import pandas as pd
import pytest

from psychrometrics import (
    humidity_is_feasible,
    required_humidity_for_target_vpd,
    saturation_vapor_pressure,
    temperature_adjustment_approx,
    temperature_for_target_vpd,
    vpd,
    vpd_series,
)


def test_saturation_vapor_pressure_reference_point():
    assert saturation_vapor_pressure(20.0) == pytest.approx(2.3383, abs=1e-3)
    assert saturation_vapor_pressure(0.0) == pytest.approx(0.6108)


def test_saturation_vapor_pressure_increases_with_temperature():
    values = [saturation_vapor_pressure(t) for t in range(-10, 45)]
    assert all(b > a for a, b in zip(values, values[1:]))


def test_vpd_worked_example():
    # 20 °C at 70 % RH
    assert vpd(20.0, 70.0) == pytest.approx(0.7015, abs=1e-3)


def test_vpd_is_zero_when_saturated_and_negative_above():
    assert vpd(25.0, 100.0) == pytest.approx(0.0)
    assert vpd(25.0, 105.0) < 0


def test_vpd_decreases_with_humidity():
    assert vpd(22.0, 50.0) > vpd(22.0, 60.0) > vpd(22.0, 70.0)


@pytest.mark.parametrize("rh", [0.0, 30.0, 60.0, 85.0, 99.0])
def test_vpd_increases_with_temperature(rh):
    values = [vpd(float(t), rh) for t in range(-5, 41)]
    assert all(b > a for a, b in zip(values, values[1:]))


def test_required_humidity_worked_example():
    assert required_humidity_for_target_vpd(20.0, 1.0) == pytest.approx(57.23, abs=0.05)


@pytest.mark.parametrize("temp,target", [(18.0, 0.8), (22.0, 1.0), (26.0, 1.2)])
def test_required_humidity_round_trip(temp, target):
    rh = required_humidity_for_target_vpd(temp, target)
    assert vpd(temp, rh) == pytest.approx(target, abs=1e-9)


def test_required_humidity_can_be_infeasible():
    rh = required_humidity_for_target_vpd(10.0, 2.0)
    assert rh < 0
    assert not humidity_is_feasible(rh)


@pytest.mark.parametrize("temp,rh", [(15.0, 55.0), (22.5, 70.0), (28.0, 80.0)])
def test_temperature_for_target_vpd_inverts_vpd(temp, rh):
    target = vpd(temp, rh)
    assert temperature_for_target_vpd(rh, target) == pytest.approx(temp, abs=1e-6)


def test_temperature_for_target_vpd_unreachable():
    assert temperature_for_target_vpd(100.0, 1.0) is None
    assert temperature_for_target_vpd(70.0, 0.0) is None


def test_temperature_adjustment_approx():
    assert temperature_adjustment_approx(20.0, 0.7, 1.0) == pytest.approx(1.5)
    assert temperature_adjustment_approx(20.0, 1.2, 1.0) == pytest.approx(-1.0)
    assert temperature_adjustment_approx(20.0, 1.2, 1.0, k=2) == pytest.approx(-0.4)


def test_humidity_is_feasible_bounds():
    assert humidity_is_feasible(0.0)
    assert humidity_is_feasible(100.0)
    assert not humidity_is_feasible(100.5)


def test_vpd_series_matches_scalar_and_coerces():
    temps = pd.Series([20.0, 25.0, "bad"])
    rh = pd.Series([70.0, 105.0, 50.0])
    result = vpd_series(temps, rh)

    assert result.iloc[0] == pytest.approx(vpd(20.0, 70.0))
    assert result.iloc[1] < 0
    assert math.isnan(result.iloc[2])
    assert isinstance(result, pd.Series)
    assert np.isfinite(result.iloc[:2]).all()
