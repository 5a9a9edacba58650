"""Train Model Backend
"""
import logging
import math
from dataclasses import dataclass, field
from random import Random
from typing import NamedTuple, Optional

from universal.config import DEFAULT_CONFIG, SimulationConfig
from universal.universal import ConversionFunctions, DwellState

logger = logging.getLogger(__name__)


@dataclass
class Performance:
    """Safety and performance record for one session.

    Attributes:
        score: Running score; rounded to an int once the journey completes.
        safety_violations: Number of signals passed at danger.
        overruns: Platforms passed above arrival speed.
        comfort: Ride comfort in [0, 1], only ever decays.
        completed: Set once completion scoring has run.
    """
    score: float = 0.0
    safety_violations: int = 0
    overruns: int = 0
    comfort: float = 1.0
    completed: bool = False


@dataclass
class TrainState:
    """The single mutable aggregate of the simulation.

    Units: position in km, speed in km/h, acceleration in m/s^2.
    Throttle and brake are fractions in [0, 1].
    """
    position_km: float = 0.0
    speed_kmh: float = 0.0
    throttle: float = 0.0
    brake: float = 0.0
    emergency_brake: bool = False
    passengers: int = 120
    capacity: int = 900
    dwell_remaining_s: float = 0.0
    dwell_state: DwellState = DwellState.RUNNING
    current_station_index: int = 0
    next_station_index: int = 1
    acceleration_ms2: float = 0.0
    performance: Performance = field(default_factory=Performance)

    @classmethod
    def initial(cls, config: SimulationConfig = DEFAULT_CONFIG,
                origin_km: float = 0.0) -> "TrainState":
        return cls(
            position_km=origin_km,
            passengers=config.initial_passengers,
            capacity=config.capacity,
        )


class PhysicsStep(NamedTuple):
    speed_kmh: float
    position_km: float
    acceleration_ms2: float


class TrainPhysics:
    """Net-force physics integrator for the train.

    Attributes:
        config: Simulation constants (forces, mass, limits).
        route_length_km: Upper bound for the train position.
    """

    def __init__(self, config: SimulationConfig = DEFAULT_CONFIG,
                 route_length_km: float = float("inf")) -> None:
        self.config = config
        self.route_length_km = route_length_km

    def mass_kg(self, passengers: int) -> float:
        """Total train mass including passengers."""
        passenger_mass = max(0, passengers) * self.config.passenger_mass_kg
        return max(1.0, self.config.train_mass_kg + passenger_mass)

    def net_force_n(self, train: TrainState, v_mps: float, mass: float) -> float:
        """Traction minus brake and resistive forces at speed ``v_mps``.

        Args:
            train: Current train state (throttle, brake, latch).
            v_mps: Speed in m/s.
            mass: Train mass in kg.

        Returns:
            Net longitudinal force in newtons. Resistance never pushes a
            stationary train backwards.
        """
        cfg = self.config
        if train.emergency_brake:
            f_tractive = 0.0
        else:
            f_tractive = (train.throttle * cfg.max_traction_force_n *
                          cfg.traction_coefficient)
        f_brake = train.brake * cfg.max_brake_force_n
        f_drag = cfg.aero_drag_coefficient * v_mps * v_mps
        f_roll = cfg.rolling_resistance_coefficient * mass * cfg.gravity_ms2
        resist = f_brake + f_drag + f_roll

        if v_mps <= 0.0 and resist >= f_tractive:
            return 0.0
        return f_tractive - resist

    def advance(self, train: TrainState, dt: float,
                speed_limit_kmh: float) -> PhysicsStep:
        """Advance speed and position by one time step.

        Args:
            train: Current state; not modified.
            dt: Time step in seconds.
            speed_limit_kmh: Effective speed limit for this step.

        Returns:
            New speed (km/h), position (km) and the resulting
            acceleration (m/s^2).
        """
        if dt <= 0.0:
            return PhysicsStep(train.speed_kmh, train.position_km, 0.0)

        cfg = self.config
        v_old = ConversionFunctions.kmh_to_mps(train.speed_kmh)
        mass = self.mass_kg(train.passengers)

        a_base = self.net_force_n(train, v_old, mass) / mass
        v_new_kmh = ConversionFunctions.mps_to_kmh(max(0.0, v_old + a_base * dt))

        # Traction never gains speed past the limit; overspeed bleeds off at
        # a bounded rate and never undershoots
        limit = max(0.0, min(speed_limit_kmh, cfg.max_speed_kmh))
        if v_new_kmh > limit:
            v_new_kmh = min(v_new_kmh, train.speed_kmh)
            v_new_kmh = max(limit, v_new_kmh - cfg.overspeed_bleed_kmh_s * dt)

        v_new_kmh = min(max(v_new_kmh, 0.0), cfg.max_speed_kmh)
        v_new = ConversionFunctions.kmh_to_mps(v_new_kmh)

        # Trapezoidal position update
        distance_km = ConversionFunctions.meters_to_km(0.5 * (v_old + v_new) * dt)
        position = min(max(train.position_km + distance_km, 0.0),
                       self.route_length_km)

        acceleration = (v_new - v_old) / dt
        return PhysicsStep(v_new_kmh, position, acceleration)


class PassengerExchange(NamedTuple):
    alighted: int
    boarded: int
    passengers: int


def exchange_passengers(passengers: int, capacity: int,
                        alight_request: int, board_request: int) -> PassengerExchange:
    """Alight then board, keeping the load within [0, capacity].

    Args:
        passengers: Passengers on board before the stop.
        capacity: Maximum passengers the train can carry.
        alight_request: Passengers wishing to leave.
        board_request: Passengers wishing to join.

    Returns:
        Passengers actually alighted and boarded, and the new load.
    """
    passengers = min(max(0, int(passengers)), capacity)
    alighted = min(passengers, max(0, int(alight_request)))
    room = capacity - (passengers - alighted)
    boarded = min(room, max(0, int(board_request)))
    return PassengerExchange(alighted, boarded, passengers - alighted + boarded)


def draw_exchange_requests(rng: Random, config: SimulationConfig = DEFAULT_CONFIG,
                           alight: Optional[int] = None,
                           board: Optional[int] = None):
    """Fill in missing alight/board counts with random draws.

    Returns:
        Tuple of (alight_request, board_request).
    """
    if alight is None:
        alight = math.floor(rng.random() * config.random_alight_max)
    if board is None:
        low, high = config.random_board_range
        board = math.floor(low + rng.random() * (high - low))
    return alight, board
