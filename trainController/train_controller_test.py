import pytest

from universal.config import DEFAULT_CONFIG
from trainModel.train_model_backend import TrainState
from trainController.train_controller_backend import (
    STATUS_LOG_SIZE,
    ControlInputs,
    TrainControllerBackend,
)

DT = 0.05


@pytest.fixture
def controller():
    return TrainControllerBackend(DEFAULT_CONFIG)


@pytest.fixture
def train():
    return TrainState.initial(DEFAULT_CONFIG)


def run(controller, train, controls, ticks):
    for _ in range(ticks):
        controller.apply(train, controls, DT)


def test_throttle_ramps_up_and_down(controller, train):
    run(controller, train, ControlInputs(throttle_axis=1.0), 20)
    assert train.throttle == pytest.approx(0.5)

    run(controller, train, ControlInputs(throttle_axis=-1.0), 10)
    assert train.throttle == pytest.approx(0.25)


def test_throttle_stays_in_range(controller, train):
    run(controller, train, ControlInputs(throttle_axis=1.0), 100)
    assert train.throttle == 1.0

    run(controller, train, ControlInputs(throttle_axis=-1.0), 100)
    assert train.throttle == 0.0


def test_throttle_button_steps(controller, train):
    controller.apply(train, ControlInputs(throttle_step=1), DT)
    controller.apply(train, ControlInputs(throttle_step=1), DT)
    assert train.throttle == pytest.approx(0.2)

    controller.apply(train, ControlInputs(throttle_step=-5), DT)
    assert train.throttle == 0.0


def test_out_of_range_inputs_are_clamped(controller, train):
    result = controller.apply(
        train, ControlInputs(throttle_axis=7.0, brake_intent=-3.0), DT)

    assert result.horn is False
    assert train.throttle == pytest.approx(DEFAULT_CONFIG.throttle_rate_per_s * DT)
    assert train.brake == 0.0


def test_clamped_inputs():
    inputs = ControlInputs(throttle_axis=-2.0, brake_intent=1.5).clamped()

    assert inputs.throttle_axis == -1.0
    assert inputs.brake_intent == 1.0


def test_brake_ramps_toward_intent_and_releases(controller, train):
    run(controller, train, ControlInputs(brake_intent=1.0), 10)
    assert train.brake == pytest.approx(0.4)

    run(controller, train, ControlInputs(brake_intent=1.0), 30)
    assert train.brake == 1.0

    run(controller, train, ControlInputs(brake_intent=0.0), 5)
    assert train.brake == pytest.approx(0.8)


def test_analog_brake_settles_on_intent(controller, train):
    run(controller, train, ControlInputs(brake_intent=0.3), 40)
    assert train.brake == pytest.approx(0.3)


def test_emergency_request_latches_and_ramps_fast(controller, train):
    train.throttle = 0.8
    result = controller.apply(train, ControlInputs(emergency_brake_request=True), DT)

    assert result.emergency_applied
    assert train.emergency_brake
    assert train.throttle == 0.0
    assert train.brake == pytest.approx(DEFAULT_CONFIG.emergency_brake_rate_per_s * DT)

    run(controller, train, ControlInputs(throttle_axis=1.0), 10)
    assert train.brake == 1.0
    assert train.throttle == 0.0


def test_latch_holds_until_explicit_release(controller, train):
    controller.apply(train, ControlInputs(emergency_brake_request=True), DT)
    run(controller, train, ControlInputs(), 50)
    assert train.emergency_brake

    result = controller.apply(train, ControlInputs(emergency_brake_release=True), DT)
    assert result.emergency_released
    assert not train.emergency_brake


def test_spad_latch_is_idempotent(controller, train):
    train.throttle = 1.0

    assert controller.latch_emergency(train) is True
    assert controller.latch_emergency(train) is False
    assert train.emergency_brake
    assert train.brake == 1.0
    assert train.throttle == 0.0


def test_horn_edge_is_forwarded(controller, train):
    result = controller.apply(train, ControlInputs(horn=True), DT)
    assert result.horn


def test_held_drops_edge_inputs():
    inputs = ControlInputs(throttle_axis=1.0, throttle_step=2, brake_intent=0.5,
                           horn=True, emergency_brake_request=True)
    held = inputs.held()

    assert held == ControlInputs(throttle_axis=1.0, brake_intent=0.5)


def test_status_log_is_bounded(controller, train):
    for _ in range(STATUS_LOG_SIZE + 20):
        controller.apply(train, ControlInputs(emergency_brake_request=True), DT)
        controller.apply(train, ControlInputs(emergency_brake_release=True), DT)

    assert len(controller.status_log) == STATUS_LOG_SIZE
