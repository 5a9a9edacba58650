"""Track Controller Backend module.

Wayside rule evaluation for the route simulator: derives the binding speed
limit at the train's position, detects signals passed at danger, grants
stop-and-proceed authority at red signals and issues level crossing
warnings. Hint text for the cab display is built by the pure
``build_hint`` function.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Tuple

from trackModel.track_model_backend import (
    LevelCrossing,
    Route,
    Signal,
    TrackFeatures,
)
from universal.config import DEFAULT_CONFIG, SimulationConfig
from universal.universal import (
    ConversionFunctions,
    CrossingKind,
    DwellState,
    HintLevel,
    SignalAspect,
)

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

NO_HINT = "—"


class CrossingWarning(NamedTuple):
    """A level crossing inside the warning window ahead of the train."""

    crossing: LevelCrossing
    distance_km: float


class Notice(NamedTuple):
    """Transient message shown on the hint line (e.g. a passenger exchange)."""

    text: str
    level: HintLevel


@dataclass
class RuleEvaluation:
    """Result of one rule evaluation.

    Attributes:
        speed_limit_kmh: Most restrictive limit at the train's position.
        limit_reason: Which rule produced the limit.
        signal_aspect: Aspect of the first signal within the lookahead,
            GREEN when there is none.
        upcoming_signal: That signal, if any.
        signal_distance_km: Distance to it, if any.
        spad_triggered: A red signal was passed at danger this tick.
        in_station_zone: The train is inside the next station's slow zone.
        new_crossing_warnings: Crossings warned for the first time this tick.
        nearest_crossing: First crossing inside the warning window, if any.
    """

    speed_limit_kmh: float
    limit_reason: str = "line"
    signal_aspect: SignalAspect = SignalAspect.GREEN
    upcoming_signal: Optional[Signal] = None
    signal_distance_km: Optional[float] = None
    spad_triggered: bool = False
    in_station_zone: bool = False
    new_crossing_warnings: List[CrossingWarning] = field(default_factory=list)
    nearest_crossing: Optional[CrossingWarning] = None


class RuleEvaluator:
    """Evaluates speed limits and safety events against the track layout.

    Attributes:
        route: Route model.
        features: Signals and level crossings of the current session.
        config: Simulation constants.
    """

    def __init__(self, route: Route, features: TrackFeatures,
                 config: SimulationConfig = DEFAULT_CONFIG) -> None:
        self.route = route
        self.features = features
        self.config = config
        self._red_hold_s = 0.0
        self._held_signal: Optional[Signal] = None

    def upcoming_signal(self, position_km: float) -> Optional[Signal]:
        """First signal at or ahead of the train within the lookahead window."""
        for signal in self.features.signals:
            if (signal.km >= position_km and
                    signal.km - position_km <= self.config.signal_lookahead_km):
                return signal
        return None

    def nearest_red_passed(self, position_km: float) -> Optional[Signal]:
        """Nearest red signal whose stop boundary the train has reached."""
        boundary = position_km + self.config.spad_epsilon_km
        nearest = None
        for signal in self.features.signals:
            if signal.km > boundary:
                break
            if signal.aspect is SignalAspect.RED:
                nearest = signal
        return nearest

    def station_limit(self, position_km: float,
                      next_station_index: int) -> Tuple[Optional[float], str, bool]:
        """Station slow zone and platform approach curve limit.

        Returns:
            Tuple of (limit or None, reason, in_station_zone).
        """
        cfg = self.config
        station = self.route.stations[next_station_index]
        offset = station.km - position_km
        if abs(offset) > cfg.station_slow_radius_km:
            return None, "line", False

        limit = cfg.station_speed_limit_kmh
        reason = "station"
        if 0.0 <= offset <= cfg.approach_brake_km:
            d_m = ConversionFunctions.km_to_meters(offset)
            curve = ConversionFunctions.mps_to_kmh(
                math.sqrt(2.0 * cfg.approach_decel_ms2 * d_m))
            curve = max(cfg.creep_speed_kmh, curve)
            if curve < limit:
                limit = curve
                reason = "approach"
        return limit, reason, True

    def _update_red_hold(self, signal: Signal, speed_kmh: float,
                         dt: float) -> None:
        if signal is not self._held_signal:
            self._held_signal = signal
            self._red_hold_s = 0.0
        if speed_kmh > 0.0:
            self._red_hold_s = 0.0
            return
        self._red_hold_s += dt
        if self._red_hold_s >= self.config.red_hold_s:
            signal.proceed_authorised = True
            logger.info(
                "Authority to pass red signal at %.2f km granted after "
                "%.0fs stand", signal.km, self._red_hold_s)

    def _check_crossings(self, position_km: float,
                         evaluation: RuleEvaluation) -> None:
        window = self.config.crossing_warning_km
        for crossing in self.features.crossings:
            distance = crossing.km - position_km
            if distance < 0.0 or distance >= window:
                continue
            warning = CrossingWarning(crossing, distance)
            if evaluation.nearest_crossing is None:
                evaluation.nearest_crossing = warning
            if not crossing.warned:
                crossing.warned = True
                evaluation.new_crossing_warnings.append(warning)
                logger.info(
                    "Level crossing (%s) at %.2f km: sound horn",
                    crossing.kind.value, crossing.km)

    def evaluate(self, position_km: float, speed_kmh: float,
                 next_station_index: int, dt: float = 0.0) -> RuleEvaluation:
        """Derive the speed limit and safety events for the current tick.

        Args:
            position_km: Train position.
            speed_kmh: Train speed.
            next_station_index: Index of the next station on the route.
            dt: Tick length, used for the stop-and-proceed timer.

        Returns:
            RuleEvaluation for this tick.
        """
        cfg = self.config
        evaluation = RuleEvaluation(speed_limit_kmh=cfg.max_speed_kmh)

        station_limit, reason, in_zone = self.station_limit(
            position_km, next_station_index)
        evaluation.in_station_zone = in_zone
        if station_limit is not None and station_limit < evaluation.speed_limit_kmh:
            evaluation.speed_limit_kmh = station_limit
            evaluation.limit_reason = reason

        signal = self.upcoming_signal(position_km)
        if signal is not None:
            evaluation.upcoming_signal = signal
            evaluation.signal_aspect = signal.aspect
            evaluation.signal_distance_km = signal.km - position_km
            if signal.aspect is SignalAspect.YELLOW:
                if cfg.caution_speed_kmh < evaluation.speed_limit_kmh:
                    evaluation.speed_limit_kmh = cfg.caution_speed_kmh
                    evaluation.limit_reason = "caution"
            elif signal.aspect is SignalAspect.RED:
                if not signal.proceed_authorised:
                    self._update_red_hold(signal, speed_kmh, dt)
                if signal.proceed_authorised:
                    limit, why = cfg.proceed_speed_kmh, "proceed"
                else:
                    limit, why = 0.0, "danger"
                if limit < evaluation.speed_limit_kmh:
                    evaluation.speed_limit_kmh = limit
                    evaluation.limit_reason = why

        passed = self.nearest_red_passed(position_km)
        if (passed is not None and not passed.spad_recorded and
                not passed.proceed_authorised and
                speed_kmh > cfg.spad_speed_threshold_kmh):
            passed.spad_recorded = True
            evaluation.spad_triggered = True
            logger.warning(
                "SPAD: red signal at %.2f km passed at %.1f km/h",
                passed.km, speed_kmh)

        self._check_crossings(position_km, evaluation)
        return evaluation


def build_hint(evaluation: Optional[RuleEvaluation],
               speed_kmh: float = 0.0,
               emergency_brake: bool = False,
               dwell_state: DwellState = DwellState.RUNNING,
               dwell_remaining_s: float = 0.0,
               station_name: str = "",
               notice: Optional[Notice] = None,
               max_speed_kmh: float = DEFAULT_CONFIG.max_speed_kmh,
               ) -> Tuple[str, HintLevel]:
    """Pick the hint line text for the current state.

    Highest priority first: SPAD, emergency brake, red ahead, crossing,
    notice, dwell countdown, yellow caution, speed-limited section.
    """
    if dwell_state is DwellState.JOURNEY_COMPLETE:
        return "Route completed. Congratulations!", HintLevel.OK
    if evaluation is not None and evaluation.spad_triggered:
        return ("Signal passed at danger! Emergency braking engaged.",
                HintLevel.WARN)
    if emergency_brake:
        return "Emergency brake applied. Release when stopped.", HintLevel.WARN

    if evaluation is not None and evaluation.signal_aspect is SignalAspect.RED:
        signal = evaluation.upcoming_signal
        if signal is not None and signal.proceed_authorised:
            return ("Authorised past red signal. Proceed with caution.",
                    HintLevel.OK)
        return "Red signal ahead. Stop before signal.", HintLevel.WARN

    if evaluation is not None and evaluation.nearest_crossing is not None:
        warning = evaluation.nearest_crossing
        if warning.crossing.kind is CrossingKind.MANUAL:
            text = f"Manned level crossing in {warning.distance_km:.2f} km. Sound horn."
        else:
            text = f"Level crossing in {warning.distance_km:.2f} km. Sound horn."
        return text, HintLevel.OK

    if notice is not None:
        return notice.text, notice.level

    if dwell_state is DwellState.DWELLING:
        return (f"Dwelling at {station_name}: departs in "
                f"{max(0.0, dwell_remaining_s):.0f}s", HintLevel.OK)

    if evaluation is None:
        return NO_HINT, HintLevel.NONE

    if evaluation.signal_aspect is SignalAspect.YELLOW:
        return "Caution: Yellow signal ahead. Prepare to slow.", HintLevel.OK

    if (evaluation.speed_limit_kmh < max_speed_kmh and
            speed_kmh > evaluation.speed_limit_kmh):
        return "Speed limited in this section.", HintLevel.OK

    return NO_HINT, HintLevel.NONE
