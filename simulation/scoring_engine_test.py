import pytest

from universal.config import DEFAULT_CONFIG
from trainModel.train_model_backend import Performance
from simulation.scoring_engine import ScoringEngine

DT = 0.05


@pytest.fixture
def engine():
    return ScoringEngine(DEFAULT_CONFIG)


@pytest.fixture
def perf():
    return Performance()


def test_spad_penalty(engine, perf):
    engine.record_spad(perf)

    assert perf.safety_violations == 1
    assert perf.score == -DEFAULT_CONFIG.spad_penalty


def test_gentle_acceleration_keeps_comfort(engine, perf):
    engine.record_acceleration(perf, 0.7, DT)
    engine.record_acceleration(perf, -1.0, DT)

    assert perf.comfort == 1.0
    assert perf.score == 0.0


def test_uncomfortable_acceleration_decays_comfort(engine, perf):
    engine.record_acceleration(perf, -1.2, DT)

    assert perf.comfort == pytest.approx(DEFAULT_CONFIG.comfort_decay_per_s ** DT)
    assert perf.score == 0.0


def test_harsh_acceleration_costs_points(engine, perf):
    engine.record_acceleration(perf, -2.0, DT)

    assert perf.comfort < 1.0
    assert perf.score == pytest.approx(-DEFAULT_CONFIG.harsh_penalty_per_s * DT)


def test_harsh_running_is_independent_of_tick_length(engine):
    coarse = Performance()
    fine = Performance()
    for _ in range(20):
        engine.record_acceleration(coarse, -2.0, 0.05)
    for _ in range(60):
        engine.record_acceleration(fine, -2.0, 1 / 60)

    # One second of harsh braking costs the same at 20 and 60 ticks a second
    assert fine.comfort == pytest.approx(coarse.comfort)
    assert fine.comfort == pytest.approx(DEFAULT_CONFIG.comfort_decay_per_s)
    assert fine.score == pytest.approx(coarse.score)
    assert fine.score == pytest.approx(-DEFAULT_CONFIG.harsh_penalty_per_s)


def test_zero_tick_scores_nothing(engine, perf):
    engine.record_acceleration(perf, -3.0, 0.0)

    assert perf.comfort == 1.0
    assert perf.score == 0.0


def test_comfort_is_monotonic(engine, perf):
    values = [perf.comfort]
    for a in (1.2, 0.1, -3.0, 0.0, 2.5, -0.5):
        engine.record_acceleration(perf, a, DT)
        values.append(perf.comfort)

    assert all(b <= a for a, b in zip(values, values[1:]))


def test_overrun_penalty(engine, perf, caplog):
    with caplog.at_level("WARNING"):
        engine.record_overrun(perf)

    assert perf.overruns == 1
    assert perf.score == -DEFAULT_CONFIG.overrun_penalty
    assert "Platform overrun 1" in caplog.text


def test_arrival_bonus_with_high_comfort(engine, perf):
    points = engine.record_arrival(perf, boarded=40)

    expected = (DEFAULT_CONFIG.arrival_bonus + DEFAULT_CONFIG.smooth_arrival_bonus
                + 40 * DEFAULT_CONFIG.boarding_bonus_per_passenger)
    assert points == expected
    assert perf.score == expected


def test_arrival_bonus_without_comfort_bonus(engine, perf):
    perf.comfort = 0.5
    engine.record_arrival(perf, boarded=0)

    assert perf.score == DEFAULT_CONFIG.arrival_bonus


def test_time_bonus_floors_at_zero(engine):
    assert engine.time_bonus(0.0) == DEFAULT_CONFIG.time_bonus_max
    assert engine.time_bonus(1e9) == 0.0


def test_completion_score(engine, perf):
    perf.score = 300.0
    perf.comfort = 0.9
    perf.safety_violations = 1

    final = engine.record_completion(perf, elapsed_s=1000.0)

    expected = round(300.0 + (5000.0 - 1000.0) + 0.9 * 1000.0 - 250.0)
    assert final == expected
    assert perf.score == expected
    assert isinstance(perf.score, int)
    assert perf.completed


def test_completion_floors_at_zero(engine, perf):
    perf.score = -5000.0
    perf.safety_violations = 4

    assert engine.record_completion(perf, elapsed_s=1e6) == 0


def test_completion_runs_once(engine, perf):
    first = engine.record_completion(perf, elapsed_s=100.0)
    second = engine.record_completion(perf, elapsed_s=100.0)

    assert first == second == perf.score
