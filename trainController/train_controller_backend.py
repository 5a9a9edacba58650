"""
train_controller_backend.py
Operator control surface for the simulated train

Implements:
- Throttle ramping from an analog axis and from button steps
- Brake ramping toward the brake intent, faster under emergency
- Emergency brake latch (operator or SPAD) and explicit release
- Horn edge forwarding
"""

import logging
from dataclasses import dataclass, replace
from typing import List, NamedTuple

from trainModel.train_model_backend import TrainState
from universal.config import DEFAULT_CONFIG, SimulationConfig

logger = logging.getLogger(__name__)

STATUS_LOG_SIZE = 100


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class ControlInputs:
    """Control intents polled once per tick.

    Attributes:
        throttle_axis: -1 (decrease) .. 1 (increase); ramps the throttle.
        throttle_step: Button presses since the last tick (+1 up, -1 down).
        brake_intent: Target brake fraction held by the operator.
        horn: Horn pressed since the last tick.
        emergency_brake_request: Operator latches the emergency brake.
        emergency_brake_release: Operator releases the latch.
    """
    throttle_axis: float = 0.0
    throttle_step: int = 0
    brake_intent: float = 0.0
    horn: bool = False
    emergency_brake_request: bool = False
    emergency_brake_release: bool = False

    def clamped(self) -> "ControlInputs":
        """Return a copy with every analog intent inside its range."""
        axis = _clamp(float(self.throttle_axis), -1.0, 1.0)
        brake = _clamp(float(self.brake_intent), 0.0, 1.0)
        if axis != self.throttle_axis or brake != self.brake_intent:
            logger.debug(
                "Control input out of range clamped: axis %s -> %s, brake %s -> %s",
                self.throttle_axis, axis, self.brake_intent, brake)
        return replace(self, throttle_axis=axis, brake_intent=brake)

    def held(self) -> "ControlInputs":
        """Keep the held intents and drop the edge-triggered ones."""
        return ControlInputs(throttle_axis=self.throttle_axis,
                             brake_intent=self.brake_intent)


class ControlResult(NamedTuple):
    horn: bool
    emergency_applied: bool
    emergency_released: bool


class TrainControllerBackend:
    """Applies operator intents to the train's throttle and brake."""

    def __init__(self, config: SimulationConfig = DEFAULT_CONFIG):
        self.config = config
        self.status_log: List[str] = []

    def apply(self, train: TrainState, controls: ControlInputs,
              dt: float) -> ControlResult:
        """Ramp throttle and brake for one tick.

        Args:
            train: Train state to update in place.
            controls: Operator intents for this tick.
            dt: Tick length in seconds.

        Returns:
            Which edge events fired this tick.
        """
        cfg = self.config
        controls = controls.clamped()
        applied = released = False

        if controls.emergency_brake_request and not train.emergency_brake:
            train.emergency_brake = True
            applied = True
            self.log("EMERGENCY BRAKE ENGAGED by operator")
        elif controls.emergency_brake_release and train.emergency_brake:
            train.emergency_brake = False
            released = True
            self.log("Emergency brake released")

        if train.emergency_brake:
            train.throttle = 0.0
            train.brake = min(1.0, train.brake + cfg.emergency_brake_rate_per_s * dt)
        else:
            throttle = (train.throttle +
                        controls.throttle_axis * cfg.throttle_rate_per_s * dt +
                        controls.throttle_step * cfg.throttle_step)
            train.throttle = _clamp(throttle, 0.0, 1.0)

            target = controls.brake_intent
            step = cfg.brake_rate_per_s * dt
            if train.brake < target:
                train.brake = min(target, train.brake + step)
            else:
                train.brake = max(target, train.brake - step)

        return ControlResult(controls.horn, applied, released)

    def latch_emergency(self, train: TrainState) -> bool:
        """SPAD response: latch the emergency brake and apply full brake.

        Returns:
            True when the latch was newly set, False if it already was.
        """
        newly = not train.emergency_brake
        train.emergency_brake = True
        train.brake = 1.0
        train.throttle = 0.0
        if newly:
            self.log("EMERGENCY BRAKE ENGAGED - signal passed at danger")
        return newly

    def log(self, message: str) -> None:
        """Add message to status log."""
        if "EMERGENCY" in message:
            logger.warning(message)
        else:
            logger.info(message)
        self.status_log.append(message)
        if len(self.status_log) > STATUS_LOG_SIZE:
            self.status_log.pop(0)
