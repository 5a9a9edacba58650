"""Simulation configuration.

Every tunable of the simulator lives here. Tests override single fields
with ``dataclasses.replace``.
"""
from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class SimulationConfig:
    # Speed limits (km/h) and rule zones (km)
    max_speed_kmh: float = 160.0
    station_speed_limit_kmh: float = 50.0
    station_slow_radius_km: float = 1.8
    caution_speed_kmh: float = 60.0
    signal_lookahead_km: float = 4.0
    proceed_speed_kmh: float = 25.0
    red_hold_s: float = 15.0

    # Platform approach
    platform_arrival_km: float = 0.02
    arrival_speed_kmh: float = 10.0
    approach_brake_km: float = 0.4
    approach_decel_ms2: float = 0.8
    creep_speed_kmh: float = 8.0

    # Signal passed at danger
    spad_epsilon_km: float = 0.02
    spad_speed_threshold_kmh: float = 0.5

    # Level crossings
    crossing_warning_km: float = 1.0

    # Physics (SI)
    train_mass_kg: float = 420000.0
    passenger_mass_kg: float = 70.0
    max_traction_force_n: float = 315000.0
    traction_coefficient: float = 1.0
    max_brake_force_n: float = 504000.0
    aero_drag_coefficient: float = 6.5  # N per (m/s)^2
    rolling_resistance_coefficient: float = 0.0015
    gravity_ms2: float = 9.81
    overspeed_bleed_kmh_s: float = 6.0

    # Operator controls
    throttle_rate_per_s: float = 0.5
    throttle_step: float = 0.1
    brake_rate_per_s: float = 0.8
    emergency_brake_rate_per_s: float = 5.0
    departure_brake: float = 0.2

    # Dwell and passengers
    dwell_range_s: Tuple[float, float] = (18.0, 42.0)
    initial_passengers: int = 120
    capacity: int = 900
    random_alight_max: int = 80
    random_board_range: Tuple[int, int] = (40, 160)

    # Signal placement
    signal_start_km: float = 20.0
    signal_end_margin_km: float = 5.0
    signal_spacing_km: Tuple[float, float] = (20.0, 35.0)
    red_probability: float = 0.10
    yellow_probability: float = 0.15
    red_downgrade_radius_km: float = 3.0

    # Level crossing placement
    crossing_start_km: float = 30.0
    crossing_end_margin_km: float = 20.0
    crossing_min_gap_km: float = 18.0
    crossing_gap_jitter_km: float = 25.0
    crossing_station_exclusion_km: float = 4.0
    manual_crossing_probability: float = 0.35

    # Scoring
    spad_penalty: float = 500.0
    comfort_accel_threshold_ms2: float = 1.1
    harsh_accel_threshold_ms2: float = 1.5
    # Comfort and harsh penalties accrue per second of harsh running
    comfort_decay_per_s: float = 0.98
    harsh_penalty_per_s: float = 20.0
    arrival_bonus: float = 100.0
    smooth_arrival_bonus: float = 50.0
    high_comfort_threshold: float = 0.8
    boarding_bonus_per_passenger: float = 1.0
    time_bonus_max: float = 5000.0
    time_bonus_decay_per_s: float = 1.0
    comfort_bonus: float = 1000.0
    completion_violation_penalty: float = 250.0
    overrun_penalty: float = 250.0

    # Clock and display
    max_dt_s: float = 0.05
    notice_duration_s: float = 3.0

    # None draws a fresh route layout every session
    seed: Optional[int] = None


DEFAULT_CONFIG = SimulationConfig()
