import dataclasses
from random import Random

import pytest

from universal.config import DEFAULT_CONFIG
from universal.universal import DwellState
from trainModel.train_model_backend import (
    TrainPhysics,
    TrainState,
    draw_exchange_requests,
    exchange_passengers,
)

FRICTIONLESS = dataclasses.replace(
    DEFAULT_CONFIG,
    aero_drag_coefficient=0.0,
    rolling_resistance_coefficient=0.0,
)


@pytest.fixture
def train():
    return TrainState.initial(DEFAULT_CONFIG)


@pytest.fixture
def physics():
    return TrainPhysics(DEFAULT_CONFIG, route_length_km=177.0)


def step_for_time(physics: TrainPhysics, train: TrainState, total_time_s: float,
                  dt: float = 0.05, limit: float = None):
    if limit is None:
        limit = physics.config.max_speed_kmh
    remaining = total_time_s
    while remaining > 1e-9:
        sub = min(dt, remaining)
        step = physics.advance(train, sub, limit)
        train.speed_kmh = step.speed_kmh
        train.position_km = step.position_km
        train.acceleration_ms2 = step.acceleration_ms2
        remaining -= sub


def test_initial_state_uses_config(train):
    assert train.position_km == 0.0
    assert train.speed_kmh == 0.0
    assert train.passengers == DEFAULT_CONFIG.initial_passengers
    assert train.capacity == DEFAULT_CONFIG.capacity
    assert not train.emergency_brake
    assert train.dwell_state is DwellState.RUNNING


def test_mass_includes_passengers(physics):
    assert physics.mass_kg(0) == DEFAULT_CONFIG.train_mass_kg
    assert physics.mass_kg(100) == pytest.approx(
        DEFAULT_CONFIG.train_mass_kg + 100 * DEFAULT_CONFIG.passenger_mass_kg)


def test_acceleration_on_level_track(train, physics):
    train.throttle = 1.0
    step_for_time(physics, train, total_time_s=5.0)

    assert train.speed_kmh > 0.0
    assert train.position_km > 0.0
    max_a = DEFAULT_CONFIG.max_traction_force_n / physics.mass_kg(train.passengers)
    assert train.acceleration_ms2 <= max_a + 1e-6


def test_constant_acceleration_matches_closed_form(train):
    physics = TrainPhysics(FRICTIONLESS, route_length_km=100.0)
    train.throttle = 1.0
    a = FRICTIONLESS.max_traction_force_n / physics.mass_kg(train.passengers)

    step_for_time(physics, train, total_time_s=10.0, dt=0.05)

    assert train.speed_kmh == pytest.approx(a * 10.0 * 3.6, rel=1e-6)
    # Trapezoidal rule is exact under constant acceleration
    assert train.position_km == pytest.approx(0.5 * a * 100.0 / 1000.0, rel=1e-6)


def test_trapezoidal_position_update(train):
    physics = TrainPhysics(FRICTIONLESS, route_length_km=100.0)
    train.speed_kmh = 36.0
    train.brake = 0.5
    a = -0.5 * FRICTIONLESS.max_brake_force_n / physics.mass_kg(train.passengers)

    step = physics.advance(train, 1.0, 160.0)

    v_new = 10.0 + a
    assert step.speed_kmh == pytest.approx(v_new * 3.6)
    assert step.position_km == pytest.approx((10.0 + v_new) / 2.0 / 1000.0)


def test_service_brake_deceleration(train, physics):
    train.speed_kmh = 54.0
    train.brake = 1.0
    v0 = train.speed_kmh

    step_for_time(physics, train, total_time_s=5.0)

    assert 0.0 <= train.speed_kmh < v0
    assert train.acceleration_ms2 < 0.0


def test_brake_never_reverses_train(train, physics):
    train.speed_kmh = 5.0
    train.brake = 1.0

    step_for_time(physics, train, total_time_s=10.0)

    assert train.speed_kmh == 0.0
    position = train.position_km
    step_for_time(physics, train, total_time_s=5.0)
    assert train.position_km == position


def test_resistance_alone_does_not_move_stopped_train(train, physics):
    step = physics.advance(train, 0.05, 160.0)

    assert step.speed_kmh == 0.0
    assert step.position_km == 0.0
    assert step.acceleration_ms2 == 0.0


def test_emergency_latch_cuts_traction(train, physics):
    train.throttle = 1.0
    train.emergency_brake = True

    step = physics.advance(train, 0.05, 160.0)

    assert step.speed_kmh == 0.0


def test_overspeed_bleeds_at_bounded_rate(train, physics):
    train.speed_kmh = 80.0
    dt = 0.05

    step = physics.advance(train, dt, 50.0)

    # Bounded correction rather than an instantaneous clamp
    assert step.speed_kmh > 50.0
    assert step.speed_kmh >= 80.0 - DEFAULT_CONFIG.overspeed_bleed_kmh_s * dt - 0.1


def test_overspeed_correction_never_undershoots_limit(train, physics):
    train.speed_kmh = 50.2
    step = physics.advance(train, 0.05, 50.0)

    assert step.speed_kmh == pytest.approx(50.0)


def test_full_traction_cannot_hold_speed_over_limit():
    config = dataclasses.replace(DEFAULT_CONFIG, train_mass_kg=100000.0)
    physics = TrainPhysics(config, route_length_km=177.0)
    train = TrainState.initial(config)
    train.throttle = 1.0
    train.speed_kmh = 80.0
    speeds = [train.speed_kmh]

    for _ in range(110):
        step = physics.advance(train, 0.05, 50.0)
        train.speed_kmh = step.speed_kmh
        train.position_km = step.position_km
        speeds.append(step.speed_kmh)

    # Traction outpaces the bleed rate here, yet the limit still binds
    assert all(b <= a for a, b in zip(speeds, speeds[1:]))
    assert train.speed_kmh == pytest.approx(50.0)


def test_zero_limit_bleeds_to_zero(train, physics):
    train.speed_kmh = 0.2
    step = physics.advance(train, 0.05, 0.0)

    assert step.speed_kmh == 0.0


@pytest.mark.parametrize("dt", [0.0, 0.01, 0.05, 0.5, 5.0])
def test_speed_and_position_bounds(dt, physics):
    train = TrainState.initial(DEFAULT_CONFIG, origin_km=176.99)
    train.speed_kmh = DEFAULT_CONFIG.max_speed_kmh
    train.throttle = 1.0

    step = physics.advance(train, dt, 1000.0)

    assert 0.0 <= step.speed_kmh <= DEFAULT_CONFIG.max_speed_kmh
    assert 0.0 <= step.position_km <= 177.0


def test_non_positive_dt_returns_current_state(train, physics):
    train.speed_kmh = 40.0
    train.position_km = 3.0

    step = physics.advance(train, -1.0, 160.0)

    assert step == (40.0, 3.0, 0.0)


def test_exchange_within_capacity():
    result = exchange_passengers(100, 900, alight_request=50, board_request=120)

    assert result.alighted == 50
    assert result.boarded == 120
    assert result.passengers == 170


def test_exchange_alight_limited_by_load():
    result = exchange_passengers(30, 900, alight_request=80, board_request=0)

    assert result.alighted == 30
    assert result.passengers == 0


def test_exchange_board_limited_by_capacity():
    result = exchange_passengers(880, 900, alight_request=5, board_request=100)

    assert result.boarded == 25
    assert result.passengers == 900


@pytest.mark.parametrize("load,alight,board", [
    (0, 0, 0), (0, 10, 10), (900, 0, 50), (450, 600, 1000), (1, 1, 899),
])
def test_exchange_conserves_passengers(load, alight, board):
    result = exchange_passengers(load, 900, alight, board)

    assert 0 <= result.passengers <= 900
    assert result.passengers == load - result.alighted + result.boarded


def test_draw_exchange_requests_keeps_fixed_counts():
    assert draw_exchange_requests(Random(1), DEFAULT_CONFIG, 5, 7) == (5, 7)


def test_draw_exchange_requests_within_ranges():
    rng = Random(11)
    for _ in range(200):
        alight, board = draw_exchange_requests(rng, DEFAULT_CONFIG)
        assert 0 <= alight < DEFAULT_CONFIG.random_alight_max
        low, high = DEFAULT_CONFIG.random_board_range
        assert low <= board < high
