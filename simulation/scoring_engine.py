"""Scoring Engine

Accumulates the session score over a ``Performance`` record: safety
violations, ride comfort, station service and journey completion.
"""
import logging

from trainModel.train_model_backend import Performance
from universal.config import DEFAULT_CONFIG, SimulationConfig

logger = logging.getLogger(__name__)


class ScoringEngine:
    def __init__(self, config: SimulationConfig = DEFAULT_CONFIG) -> None:
        self.config = config

    def record_spad(self, performance: Performance) -> None:
        performance.safety_violations += 1
        performance.score -= self.config.spad_penalty
        logger.warning("Safety violation %d: -%.0f points",
                       performance.safety_violations, self.config.spad_penalty)

    def record_acceleration(self, performance: Performance,
                            acceleration_ms2: float, dt: float) -> None:
        """Decay comfort over a harsh tick and penalise very harsh ones.

        Both rates are per second, so the outcome does not depend on the
        host frame rate.
        """
        magnitude = abs(acceleration_ms2)
        if dt <= 0.0 or magnitude <= self.config.comfort_accel_threshold_ms2:
            return
        performance.comfort *= self.config.comfort_decay_per_s ** dt
        if magnitude > self.config.harsh_accel_threshold_ms2:
            performance.score -= self.config.harsh_penalty_per_s * dt

    def record_overrun(self, performance: Performance) -> None:
        performance.overruns += 1
        performance.score -= self.config.overrun_penalty
        logger.warning("Platform overrun %d: -%.0f points",
                       performance.overruns, self.config.overrun_penalty)

    def record_arrival(self, performance: Performance, boarded: int) -> float:
        """Award the station stop bonuses.

        Args:
            performance: Record to update.
            boarded: Passengers who joined at this stop.

        Returns:
            Points awarded for this arrival.
        """
        cfg = self.config
        points = cfg.arrival_bonus
        if performance.comfort >= cfg.high_comfort_threshold:
            points += cfg.smooth_arrival_bonus
        points += max(0, boarded) * cfg.boarding_bonus_per_passenger
        performance.score += points
        return points

    def time_bonus(self, elapsed_s: float) -> float:
        cfg = self.config
        return max(0.0, cfg.time_bonus_max - elapsed_s * cfg.time_bonus_decay_per_s)

    def record_completion(self, performance: Performance, elapsed_s: float) -> int:
        """Apply completion scoring once and return the final score."""
        if performance.completed:
            return int(performance.score)
        cfg = self.config
        total = (performance.score
                 + self.time_bonus(elapsed_s)
                 + performance.comfort * cfg.comfort_bonus
                 - performance.safety_violations * cfg.completion_violation_penalty)
        performance.score = max(0, round(total))
        performance.completed = True
        logger.info("Journey scored %d after %.0fs (comfort %.2f, %d violations)",
                    performance.score, elapsed_s, performance.comfort,
                    performance.safety_violations)
        return performance.score
