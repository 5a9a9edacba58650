"""Simulation Driver

Owns the session: the route, the track features, the train state, the
clock and the components that act on them. Each tick runs

    controls -> rule evaluation -> SPAD response -> physics -> comfort
    -> station dwell -> invariant enforcement -> snapshot -> listeners

and publishes an immutable ``TelemetrySnapshot`` to every listener. The
cab window and any other subscriber only talk back through
``set_controls``, ``toggle_pause`` and ``restart``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from random import Random
from typing import Callable, List, NamedTuple, Optional, Sequence, Tuple

from simulation.scoring_engine import ScoringEngine
from trackController.track_controller_backend import (
    Notice,
    RuleEvaluation,
    RuleEvaluator,
    build_hint,
)
from trackModel.track_model_backend import (
    DEFAULT_ROUTE,
    Route,
    RouteStation,
    TrackFeatureGenerator,
    TrackFeatures,
)
from trainController.station_dwell_controller import StationDwellController
from trainController.train_controller_backend import (
    ControlInputs,
    TrainControllerBackend,
)
from trainModel.train_model_backend import TrainPhysics, TrainState
from universal.config import DEFAULT_CONFIG, SimulationConfig
from universal.global_clock import SimulationClock
from universal.universal import (
    DwellState,
    HintLevel,
    SessionState,
    SignalAspect,
    SimulationEvent,
)

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


@dataclass(frozen=True)
class TelemetrySnapshot:
    """Read-only view of the session published after every tick."""
    speed_kmh: float
    speed_limit_kmh: float
    throttle_pct: float
    brake_pct: float
    passengers: int
    capacity: int
    current_station_name: str
    next_station_name: str
    distance_to_next_km: float
    route_progress_pct: float
    signal_aspect: SignalAspect
    active_hint_text: str
    hint_level: HintLevel
    dwell_seconds_remaining: Optional[float]
    score: float
    safety_violations: int
    overruns: int
    session_state: SessionState
    position_km: float
    emergency_brake: bool
    comfort: float
    dwell_state: DwellState
    elapsed_time: str = "00:00:00"
    events: Tuple[SimulationEvent, ...] = ()
    diagnostics: int = 0


class InvariantViolation(NamedTuple):
    """A state value found out of range and corrected after a tick."""
    field: str
    value: float
    corrected: float


SnapshotListener = Callable[[TelemetrySnapshot], None]


class SimulationDriver:
    """Runs one single-train session over a route.

    Attributes:
        config: Simulation constants.
        route: Validated route model.
        rng: Random source shared by feature generation and the dwell
            controller.
        clock: Session clock (simulated running time).
        session_state: LOADING, RUNNING, PAUSED or COMPLETED.
        train: The train state owned by this driver.
        features: Signals and level crossings of the current session.
    """

    def __init__(self, stations: Sequence[RouteStation] = DEFAULT_ROUTE,
                 config: Optional[SimulationConfig] = None,
                 rng: Optional[Random] = None) -> None:
        """Build a session in the LOADING state.

        Args:
            stations: Ordered station table.
            config: Simulation constants, defaults when omitted.
            rng: Random source; seeded from ``config.seed`` when omitted.

        Raises:
            InvalidRouteData: The station table does not describe a route.
        """
        self.config = config if config is not None else DEFAULT_CONFIG
        self.route = Route(stations)
        self.rng = rng if rng is not None else Random(self.config.seed)

        self.clock = SimulationClock(self.config.max_dt_s)
        self.physics = TrainPhysics(self.config, self.route.length_km)
        self.controller = TrainControllerBackend(self.config)
        self.dwell = StationDwellController(self.route, self.config, self.rng)
        self.scoring = ScoringEngine(self.config)
        self.generator = TrackFeatureGenerator(self.route, self.config, self.rng)

        self.session_state = SessionState.LOADING
        self.invariant_violations: List[InvariantViolation] = []
        self._listeners: List[SnapshotListener] = []
        self._pending = ControlInputs()
        self._notice: Optional[Notice] = None
        self._notice_remaining_s = 0.0
        self._evaluation: Optional[RuleEvaluation] = None

        self.train = TrainState.initial(self.config, self.route.origin_km)
        self.load_features(self.generator.generate())
        self._snapshot = self._build_snapshot(())

    # ---- session lifecycle ----
    def load_features(self, features: TrackFeatures) -> None:
        """Install a signal and crossing layout and a fresh rule evaluator."""
        self.features = features
        self.evaluator = RuleEvaluator(self.route, features, self.config)
        self._evaluation = None

    def start(self) -> TelemetrySnapshot:
        if self.session_state is SessionState.LOADING:
            self.session_state = SessionState.RUNNING
            self.clock.resync()
            logger.info("Session started: %s to %s (%.0f km)",
                        self.route.stations[0].name,
                        self.route.stations[-1].name, self.route.length_km)
        return self._publish(())

    def toggle_pause(self) -> TelemetrySnapshot:
        if self.session_state is SessionState.RUNNING:
            self.session_state = SessionState.PAUSED
            logger.info("Session paused at %s", self.clock.get_time_string())
        elif self.session_state is SessionState.PAUSED:
            self.session_state = SessionState.RUNNING
            self.clock.resync()
            logger.info("Session resumed")
        return self._publish(())

    def restart(self) -> TelemetrySnapshot:
        """Reset the train and clock and draw a new track layout."""
        self.train = TrainState.initial(self.config, self.route.origin_km)
        self.clock.reset()
        self.invariant_violations.clear()
        self._pending = ControlInputs()
        self._notice = None
        self._notice_remaining_s = 0.0
        self.load_features(self.generator.generate())
        self.session_state = SessionState.RUNNING
        logger.info("Session restarted")
        return self._publish(())

    # ---- inputs and listeners ----
    def set_controls(self, controls: ControlInputs) -> None:
        """Queue the operator intents for the next tick."""
        self._pending = controls

    def add_listener(self, callback: SnapshotListener) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)

    def remove_listener(self, callback: SnapshotListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    @property
    def snapshot(self) -> TelemetrySnapshot:
        return self._snapshot

    # ---- time ----
    def frame(self, timestamp_s: float) -> TelemetrySnapshot:
        """Advance by the time elapsed since the previous host frame."""
        if self.session_state is not SessionState.RUNNING:
            self.clock.resync()
            return self._snapshot
        return self.step(self.clock.frame_delta(timestamp_s))

    def step(self, dt_s: float) -> TelemetrySnapshot:
        """Run one tick of at most ``max_dt_s`` seconds."""
        dt = self.clock.clamp(dt_s)
        if self.session_state is not SessionState.RUNNING or dt <= 0.0:
            return self._snapshot

        self.clock.advance(dt)
        train = self.train
        perf = train.performance
        events: List[SimulationEvent] = []

        controls = self._pending
        self._pending = controls.held()
        result = self.controller.apply(train, controls, dt)
        if result.horn:
            events.append(SimulationEvent.HORN)
        if result.emergency_applied:
            events.append(SimulationEvent.EMERGENCY_BRAKE)

        evaluation = self.evaluator.evaluate(
            train.position_km, train.speed_kmh, train.next_station_index, dt)
        self._evaluation = evaluation

        if evaluation.spad_triggered:
            events.append(SimulationEvent.SPAD)
            self.scoring.record_spad(perf)
            if self.controller.latch_emergency(train):
                events.append(SimulationEvent.EMERGENCY_BRAKE)
        if evaluation.new_crossing_warnings:
            events.append(SimulationEvent.CROSSING_WARNING)

        if train.dwell_state in (DwellState.DWELLING, DwellState.JOURNEY_COMPLETE):
            train.acceleration_ms2 = 0.0
        else:
            step = self.physics.advance(train, dt, evaluation.speed_limit_kmh)
            train.speed_kmh = step.speed_kmh
            train.position_km = step.position_km
            train.acceleration_ms2 = step.acceleration_ms2
            self.scoring.record_acceleration(perf, step.acceleration_ms2, dt)

        outcome = self.dwell.update(train, dt)
        if outcome.arrived_at is not None:
            events.append(SimulationEvent.STATION_ARRIVAL)
            exchange = outcome.exchange
            if outcome.overran:
                events.append(SimulationEvent.STATION_OVERRUN)
                self.scoring.record_overrun(perf)
            self.scoring.record_arrival(perf, exchange.boarded)
            text = (f"{outcome.arrived_at.name}: {exchange.alighted} alighted, "
                    f"{exchange.boarded} boarded")
            if outcome.overran:
                self._show_notice(f"Overran {text}", HintLevel.WARN)
            else:
                self._show_notice(text, HintLevel.OK)
        if outcome.departed_from is not None:
            events.append(SimulationEvent.STATION_DEPARTURE)
            self._show_notice(f"Departing {outcome.departed_from.name}",
                              HintLevel.OK)
        if outcome.completed:
            events.append(SimulationEvent.JOURNEY_COMPLETE)
            self.scoring.record_completion(perf, self.clock.elapsed_s)
            self.session_state = SessionState.COMPLETED
            logger.info("Session completed in %s with score %d",
                        self.clock.get_time_string(), perf.score)

        self._enforce_invariants()

        if self._notice is not None:
            self._notice_remaining_s -= dt
            if self._notice_remaining_s <= 0.0:
                self._notice = None

        return self._publish(tuple(events))

    # ---- internals ----
    def _show_notice(self, text: str, level: HintLevel) -> None:
        self._notice = Notice(text, level)
        self._notice_remaining_s = self.config.notice_duration_s

    def _clamp_field(self, obj, name: str, low: float, high: float) -> None:
        value = getattr(obj, name)
        corrected = min(max(value, low), high)
        if corrected != value:
            setattr(obj, name, corrected)
            violation = InvariantViolation(name, value, corrected)
            self.invariant_violations.append(violation)
            logger.warning("Invariant violation: %s=%r corrected to %r",
                           name, value, corrected)

    def _enforce_invariants(self) -> None:
        train = self.train
        self._clamp_field(train, "speed_kmh", 0.0, self.config.max_speed_kmh)
        self._clamp_field(train, "position_km", self.route.origin_km,
                          self.route.length_km)
        self._clamp_field(train, "passengers", 0, train.capacity)
        self._clamp_field(train, "throttle", 0.0, 1.0)
        self._clamp_field(train, "brake", 0.0, 1.0)
        self._clamp_field(train, "dwell_remaining_s", 0.0, float("inf"))
        self._clamp_field(train.performance, "comfort", 0.0, 1.0)

    def _build_snapshot(self, events: Tuple[SimulationEvent, ...]) -> TelemetrySnapshot:
        train = self.train
        route = self.route
        perf = train.performance
        evaluation = self._evaluation
        current = route.stations[train.current_station_index]
        upcoming = route.stations[train.next_station_index]

        span = route.length_km - route.origin_km
        progress = 100.0 * (train.position_km - route.origin_km) / span
        dwelling = train.dwell_state is DwellState.DWELLING
        hint, level = build_hint(
            evaluation,
            speed_kmh=train.speed_kmh,
            emergency_brake=train.emergency_brake,
            dwell_state=train.dwell_state,
            dwell_remaining_s=train.dwell_remaining_s,
            station_name=current.name,
            notice=self._notice,
            max_speed_kmh=self.config.max_speed_kmh,
        )

        return TelemetrySnapshot(
            speed_kmh=train.speed_kmh,
            speed_limit_kmh=(evaluation.speed_limit_kmh if evaluation is not None
                             else self.config.max_speed_kmh),
            throttle_pct=train.throttle * 100.0,
            brake_pct=train.brake * 100.0,
            passengers=train.passengers,
            capacity=train.capacity,
            current_station_name=current.name,
            next_station_name=upcoming.name,
            distance_to_next_km=(0.0 if dwelling
                                 else max(0.0, upcoming.km - train.position_km)),
            route_progress_pct=min(100.0, max(0.0, progress)),
            signal_aspect=(evaluation.signal_aspect if evaluation is not None
                           else SignalAspect.GREEN),
            active_hint_text=hint,
            hint_level=level,
            dwell_seconds_remaining=train.dwell_remaining_s if dwelling else None,
            score=perf.score,
            safety_violations=perf.safety_violations,
            overruns=perf.overruns,
            session_state=self.session_state,
            position_km=train.position_km,
            emergency_brake=train.emergency_brake,
            comfort=perf.comfort,
            dwell_state=train.dwell_state,
            elapsed_time=self.clock.get_time_string(),
            events=events,
            diagnostics=len(self.invariant_violations),
        )

    def _publish(self, events: Tuple[SimulationEvent, ...]) -> TelemetrySnapshot:
        self._snapshot = self._build_snapshot(events)
        for callback in list(self._listeners):
            try:
                callback(self._snapshot)
            except Exception:
                logger.exception("Telemetry listener %r failed", callback)
        return self._snapshot
