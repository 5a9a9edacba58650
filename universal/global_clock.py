# universal/global_clock.py
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class SimulationClock:
    """Session clock for the route simulator.

    Turns host frame timestamps into clamped per-tick deltas and keeps the
    elapsed simulated time used for completion scoring. Time spent paused
    is never simulated: the first frame after a resume starts a new delta.
    """

    def __init__(self, max_dt_s: float = 0.05):
        self.max_dt_s = max_dt_s
        self.elapsed_s = 0.0
        self.last_timestamp: Optional[float] = None

    # ---- core time control ----
    def clamp(self, dt_s: float) -> float:
        """Clamp a raw delta into [0, max_dt_s]."""
        if dt_s <= 0.0:
            return 0.0
        if dt_s > self.max_dt_s:
            logger.debug("Frame delta %.3fs clamped to %.3fs", dt_s, self.max_dt_s)
            return self.max_dt_s
        return dt_s

    def frame_delta(self, timestamp_s: float) -> float:
        """Return the clamped delta since the previous frame timestamp."""
        if self.last_timestamp is None:
            self.last_timestamp = timestamp_s
            return 0.0
        raw = timestamp_s - self.last_timestamp
        self.last_timestamp = timestamp_s
        return self.clamp(raw)

    def advance(self, dt_s: float) -> None:
        """Accumulate simulated running time."""
        self.elapsed_s += dt_s

    def resync(self) -> None:
        """Forget the last timestamp so the next frame starts a fresh delta."""
        self.last_timestamp = None

    def reset(self) -> None:
        self.elapsed_s = 0.0
        self.last_timestamp = None

    def get_time_string(self) -> str:
        minutes, seconds = divmod(int(self.elapsed_s), 60)
        hours, minutes = divmod(minutes, 60)
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"

    def __repr__(self):
        return self.get_time_string()
