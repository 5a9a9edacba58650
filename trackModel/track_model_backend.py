"""
Track Model Backend
"""
import logging
from dataclasses import dataclass, field
from random import Random
from typing import List, NamedTuple, Optional, Sequence, Tuple

from universal.config import DEFAULT_CONFIG, SimulationConfig
from universal.universal import CrossingKind, SignalAspect

logger = logging.getLogger(__name__)


class InvalidRouteData(ValueError):
    """Raised when the station table cannot describe a route."""


@dataclass(frozen=True)
class RouteStation:
    """A station on the route.

    Attributes:
        name: Display name of the station.
        km: Cumulative distance from the origin in kilometres.
        alight: Fixed number of passengers leaving here, or None to draw one.
        board: Fixed number of passengers joining here, or None to draw one.
    """
    name: str
    km: float
    alight: Optional[int] = None
    board: Optional[int] = None


# Mumbai CSMT to Pune Jn, cumulative distances in km
DEFAULT_ROUTE: Tuple[RouteStation, ...] = (
    RouteStation("Mumbai CSMT", 0.0),
    RouteStation("Dadar", 10.0),
    RouteStation("Thane", 24.0),
    RouteStation("Kalyan Jn", 44.0),
    RouteStation("Karjat", 84.0),
    RouteStation("Lonavala", 113.0),
    RouteStation("Shivajinagar", 171.0),
    RouteStation("Pune Jn", 177.0),
)


class StationContext(NamedTuple):
    current_index: int
    next_index: int
    distance_to_next_km: float


class Route:
    """Immutable ordered station list with cumulative distances.

    Attributes:
        stations: Stations in travel order.
        length_km: Total route length (the last station's km).
    """

    def __init__(self, stations: Sequence[RouteStation]) -> None:
        """Validate and store the station table.

        Args:
            stations: Ordered stations, strictly increasing in km.

        Raises:
            InvalidRouteData: Fewer than two stations, a negative origin, or
                distances that are not strictly increasing.
        """
        stations = tuple(stations)
        if len(stations) < 2:
            raise InvalidRouteData(
                f"A route needs at least two stations, got {len(stations)}.")
        if stations[0].km < 0:
            raise InvalidRouteData(
                f"Station '{stations[0].name}' has a negative distance "
                f"({stations[0].km} km).")
        for prev, nxt in zip(stations, stations[1:]):
            if not nxt.km > prev.km:
                raise InvalidRouteData(
                    f"Station '{nxt.name}' ({nxt.km} km) is not beyond "
                    f"'{prev.name}' ({prev.km} km).")
        for station in stations:
            if ((station.alight is not None and station.alight < 0) or
                    (station.board is not None and station.board < 0)):
                raise InvalidRouteData(
                    f"Station '{station.name}' has a negative passenger count.")

        self.stations = stations
        self.length_km = stations[-1].km

    @property
    def origin_km(self) -> float:
        return self.stations[0].km

    @property
    def final_index(self) -> int:
        return len(self.stations) - 1

    def station_context(self, position_km: float) -> StationContext:
        """Locate the train relative to the station list.

        Args:
            position_km: Train position in km.

        Returns:
            Index of the last station at or behind the train, index of the
            next station (capped at the final one), and the non-negative
            distance to it.
        """
        current = 0
        for i, station in enumerate(self.stations):
            if position_km >= station.km:
                current = i
        nxt = min(current + 1, self.final_index)
        distance = max(0.0, self.stations[nxt].km - position_km)
        return StationContext(current, nxt, distance)

    def distance_to_nearest_station(self, km: float) -> float:
        return min(abs(s.km - km) for s in self.stations)

    def __len__(self) -> int:
        return len(self.stations)


@dataclass
class Signal:
    """Lineside signal.

    Attributes:
        km: Position of the signal.
        aspect: Aspect fixed at generation time.
        spad_recorded: Set once a signal passed at danger has been charged.
        proceed_authorised: Set once stop-and-proceed authority is granted.
    """
    km: float
    aspect: SignalAspect
    spad_recorded: bool = False
    proceed_authorised: bool = False


@dataclass
class LevelCrossing:
    """Level crossing; ``warned`` is set when the first warning is issued."""
    km: float
    kind: CrossingKind = CrossingKind.AUTOMATIC
    warned: bool = False


@dataclass
class TrackFeatures:
    signals: List[Signal] = field(default_factory=list)
    crossings: List[LevelCrossing] = field(default_factory=list)


class TrackFeatureGenerator:
    """Places signals and level crossings along a route.

    Every call to ``generate`` is an independent draw from the same
    distribution, so a restart produces a fresh layout.
    """

    def __init__(self, route: Route,
                 config: SimulationConfig = DEFAULT_CONFIG,
                 rng: Optional[Random] = None) -> None:
        self.route = route
        self.config = config
        self.rng = rng if rng is not None else Random(config.seed)

    def generate(self) -> TrackFeatures:
        features = TrackFeatures(
            signals=self.generate_signals(),
            crossings=self.generate_crossings(),
        )
        logger.debug(
            "Generated %d signals and %d level crossings over %.1f km",
            len(features.signals), len(features.crossings),
            self.route.length_km)
        return features

    def _draw_aspect(self) -> SignalAspect:
        r = self.rng.random()
        if r < self.config.red_probability:
            return SignalAspect.RED
        if r < self.config.red_probability + self.config.yellow_probability:
            return SignalAspect.YELLOW
        return SignalAspect.GREEN

    def generate_signals(self) -> List[Signal]:
        cfg = self.config
        low, high = cfg.signal_spacing_km
        end = self.route.length_km - cfg.signal_end_margin_km
        signals: List[Signal] = []
        km = self.route.origin_km + cfg.signal_start_km
        while km < end:
            aspect = self._draw_aspect()
            # Keep station approaches free of stop signals
            if (aspect is SignalAspect.RED and
                    self.route.distance_to_nearest_station(km)
                    < cfg.red_downgrade_radius_km):
                aspect = SignalAspect.YELLOW
            signals.append(Signal(km=km, aspect=aspect))
            km += self.rng.uniform(low, high)
        return signals

    def generate_crossings(self) -> List[LevelCrossing]:
        cfg = self.config
        end = self.route.length_km - cfg.crossing_end_margin_km
        crossings: List[LevelCrossing] = []
        km = self.route.origin_km + cfg.crossing_start_km
        while km < end:
            if (self.route.distance_to_nearest_station(km)
                    >= cfg.crossing_station_exclusion_km):
                if self.rng.random() < cfg.manual_crossing_probability:
                    kind = CrossingKind.MANUAL
                else:
                    kind = CrossingKind.AUTOMATIC
                crossings.append(LevelCrossing(km=km, kind=kind))
            km += cfg.crossing_min_gap_km + self.rng.random() * cfg.crossing_gap_jitter_km
        return crossings
