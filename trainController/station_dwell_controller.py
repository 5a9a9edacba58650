"""Station Dwell Controller

State machine governing arrival at a platform, the passenger exchange,
the dwell countdown and departure:

    RUNNING -> ARRIVING -> DWELLING -> DEPARTING -> RUNNING
                    \\-> JOURNEY_COMPLETE (final station)
"""

import logging
from dataclasses import dataclass
from random import Random
from typing import Optional

from trackModel.track_model_backend import Route, RouteStation
from trainModel.train_model_backend import (
    PassengerExchange,
    TrainState,
    draw_exchange_requests,
    exchange_passengers,
)
from universal.config import DEFAULT_CONFIG, SimulationConfig
from universal.universal import DwellState

logger = logging.getLogger(__name__)


@dataclass
class DwellOutcome:
    """Transitions that fired during one controller update."""
    arrived_at: Optional[RouteStation] = None
    exchange: Optional[PassengerExchange] = None
    departed_from: Optional[RouteStation] = None
    overran: bool = False
    completed: bool = False


class StationDwellController:
    """Drives the dwell state machine stored on the train.

    Attributes:
        route: Route model.
        config: Simulation constants.
        rng: Random source for dwell times and passenger counts.
    """

    def __init__(self, route: Route, config: SimulationConfig = DEFAULT_CONFIG,
                 rng: Optional[Random] = None) -> None:
        self.route = route
        self.config = config
        self.rng = rng if rng is not None else Random(config.seed)

    def _hold(self, train: TrainState) -> None:
        train.speed_kmh = 0.0
        train.throttle = 0.0
        train.brake = 1.0

    def _exchange(self, train: TrainState, station: RouteStation,
                  terminus: bool) -> PassengerExchange:
        if terminus:
            # Everyone leaves at the end of the line
            alight, board = train.passengers, 0
        else:
            alight, board = draw_exchange_requests(
                self.rng, self.config, station.alight, station.board)
        result = exchange_passengers(train.passengers, train.capacity, alight, board)
        train.passengers = result.passengers
        logger.info(
            "Stop at %s: -%d +%d passengers (%d on board)",
            station.name, result.alighted, result.boarded, result.passengers)
        return result

    def _complete(self, train: TrainState, outcome: DwellOutcome) -> None:
        train.position_km = self.route.length_km
        train.current_station_index = self.route.final_index
        train.next_station_index = self.route.final_index
        self._hold(train)
        train.dwell_remaining_s = 0.0
        train.dwell_state = DwellState.JOURNEY_COMPLETE
        outcome.completed = True
        logger.info("Journey complete at %s", self.route.stations[-1].name)

    def update(self, train: TrainState, dt: float) -> DwellOutcome:
        """Advance the state machine by one tick.

        Args:
            train: Train state; position, speed, controls and dwell fields
                may be overridden.
            dt: Tick length in seconds.

        Returns:
            DwellOutcome describing the transitions that fired.
        """
        outcome = DwellOutcome()
        state = train.dwell_state

        if state is DwellState.JOURNEY_COMPLETE:
            self._hold(train)
            return outcome

        if state is DwellState.DWELLING:
            station = self.route.stations[train.current_station_index]
            train.position_km = station.km
            self._hold(train)
            train.dwell_remaining_s = max(0.0, train.dwell_remaining_s - dt)
            if train.dwell_remaining_s <= 0.0:
                train.brake = self.config.departure_brake
                train.dwell_state = DwellState.DEPARTING
                outcome.departed_from = station
                logger.info("Departing %s", station.name)
            return outcome

        if state is DwellState.DEPARTING:
            train.dwell_state = DwellState.RUNNING

        index = min(max(train.next_station_index, 0), self.route.final_index)
        station = self.route.stations[index]
        offset = station.km - train.position_km

        if (abs(offset) < self.config.platform_arrival_km and
                train.speed_kmh < self.config.arrival_speed_kmh):
            self._stop_at(train, index, outcome)
            return outcome

        if offset <= 0.0:
            # Passed the platform too fast: the stop is forced, not skipped
            logger.warning("Overran the %s platform at %.1f km/h",
                           station.name, train.speed_kmh)
            outcome.overran = True
            self._stop_at(train, index, outcome)
            return outcome

        if offset <= self.config.station_slow_radius_km:
            train.dwell_state = DwellState.ARRIVING
        else:
            train.dwell_state = DwellState.RUNNING
        return outcome

    def _stop_at(self, train: TrainState, index: int,
                 outcome: DwellOutcome) -> None:
        station = self.route.stations[index]
        train.position_km = station.km
        self._hold(train)
        train.current_station_index = index
        train.next_station_index = min(index + 1, self.route.final_index)
        terminus = index == self.route.final_index
        outcome.arrived_at = station
        outcome.exchange = self._exchange(train, station, terminus)
        if terminus:
            self._complete(train, outcome)
            return
        low, high = self.config.dwell_range_s
        train.dwell_remaining_s = self.rng.uniform(low, high)
        train.dwell_state = DwellState.DWELLING
        logger.info("Arrived at %s, dwelling %.0fs",
                    station.name, train.dwell_remaining_s)
