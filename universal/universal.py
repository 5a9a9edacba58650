"""
Universal data structures and conversion functions for the route simulator.
"""
from enum import Enum


class SignalAspect(Enum):
    """Enumeration of the aspects a lineside signal can display."""
    GREEN = "G"
    YELLOW = "Y"
    RED = "R"


class CrossingKind(Enum):
    """Enumeration of level crossing types."""
    AUTOMATIC = "automatic"
    MANUAL = "manual"


class DwellState(Enum):
    """States of the station dwell state machine.

    RUNNING is the initial state and the state between stations.
    ARRIVING covers the station slow zone, DWELLING the stop at the
    platform and DEPARTING the single tick in which the brake is relaxed.
    """
    RUNNING = "running"
    ARRIVING = "arriving"
    DWELLING = "dwelling"
    DEPARTING = "departing"
    JOURNEY_COMPLETE = "journey_complete"


class SessionState(Enum):
    """Enumeration of simulation session states."""
    LOADING = "loading"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


class SimulationEvent(Enum):
    """Events emitted alongside a telemetry snapshot."""
    HORN = "horn"
    SPAD = "spad"
    EMERGENCY_BRAKE = "emergency_brake"
    CROSSING_WARNING = "crossing_warning"
    STATION_ARRIVAL = "station_arrival"
    STATION_OVERRUN = "station_overrun"
    STATION_DEPARTURE = "station_departure"
    JOURNEY_COMPLETE = "journey_complete"


class HintLevel(Enum):
    """Display level for the rule hint line."""
    NONE = "none"
    OK = "ok"
    WARN = "warn"


class ConversionFunctions:
    """Holds conversion factors for various units."""

    @staticmethod
    def kmh_to_mps(kmh):
        return kmh / 3.6  # conversion factor

    @staticmethod
    def mps_to_kmh(mps):
        return mps * 3.6  # conversion factor

    @staticmethod
    def km_to_meters(km):
        return km * 1000.0

    @staticmethod
    def meters_to_km(meters):
        return meters / 1000.0
