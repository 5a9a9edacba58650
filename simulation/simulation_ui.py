"""Cab Window

PyQt6 driver's cab for the route simulator. A QTimer pumps
``SimulationDriver.frame`` with the host clock; the window renders every
published ``TelemetrySnapshot`` and writes operator input back through
``set_controls``.

Keys: W/Up throttle up, S/Down throttle down, B brake (held), H/Space horn,
E emergency brake, R release, P pause.
"""

from __future__ import annotations

import logging
import time
from typing import Dict, Set

from PyQt6.QtCore import Qt, QTimer
from PyQt6.QtWidgets import (
    QApplication,
    QGridLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QProgressBar,
    QPushButton,
    QSlider,
    QVBoxLayout,
    QWidget,
)

from simulation.simulation_driver import SimulationDriver, TelemetrySnapshot
from trainController.train_controller_backend import ControlInputs
from universal.universal import HintLevel, SessionState, SignalAspect, SimulationEvent

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

FRAME_INTERVAL_MS = 16

ASPECT_COLOURS = {
    SignalAspect.GREEN: "#2e9e44",
    SignalAspect.YELLOW: "#e0b000",
    SignalAspect.RED: "#d33232",
}

HINT_STYLES = {
    HintLevel.NONE: "background:#1a1a1a; color:#aaa;",
    HintLevel.OK: "background:#1a1a1a; color:#ddd;",
    HintLevel.WARN: "background:#5a1010; color:#fff; font-weight:800;",
}


class CabWindow(QWidget):
    """Main cab dashboard.

    Attributes:
        driver: SimulationDriver running the session.
        cab_labels: Value labels of the cab readouts, by key.
        journey_labels: Value labels of the journey readouts, by key.
        hint_lbl: The hint line.
    """

    def __init__(self, driver: SimulationDriver) -> None:
        super().__init__()
        self.driver = driver
        self.driver.add_listener(self.refresh_display)

        self._held_keys: Set[int] = set()
        self._throttle_steps = 0
        self._horn = False
        self._emergency_request = False
        self._emergency_release = False

        self.setWindowTitle("Route Simulator")
        self.resize(980, 560)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)

        root = QHBoxLayout(self)
        root.setContentsMargins(8, 6, 8, 6)
        root.setSpacing(8)

        # Left column: readouts
        left_col = QVBoxLayout()

        self.speed_lbl = QLabel("0 km/h")
        self.speed_lbl.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.speed_lbl.setStyleSheet("font-size:40px; font-weight:800;")
        left_col.addWidget(self.speed_lbl)

        self.hint_lbl = QLabel("—")
        self.hint_lbl.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.hint_lbl.setWordWrap(True)
        left_col.addWidget(self.hint_lbl)

        cab_rows = (
            ("Speed Limit (km/h)", "limit"),
            ("Throttle (%)", "throttle"),
            ("Brake (%)", "brake"),
            ("Signal Ahead", "signal"),
            ("Emergency Brake", "emergency"),
        )
        journey_rows = (
            ("Current Station", "current"),
            ("Next Station", "next"),
            ("Distance to Next (km)", "distance"),
            ("Passengers", "passengers"),
            ("Dwell (s)", "dwell"),
            ("Score", "score"),
            ("Safety Violations", "violations"),
            ("Platform Overruns", "overruns"),
            ("Comfort", "comfort"),
            ("Time", "time"),
        )
        cab_box, self.cab_labels = self._make_section("Cab", cab_rows)
        journey_box, self.journey_labels = self._make_section("Journey", journey_rows)

        sections_row = QHBoxLayout()
        sections_row.setSpacing(12)
        sections_row.addWidget(cab_box, 1)
        sections_row.addWidget(journey_box, 1)
        left_col.addLayout(sections_row)

        self.progress = QProgressBar()
        self.progress.setRange(0, 1000)
        self.progress.setTextVisible(False)
        left_col.addWidget(self.progress)
        root.addLayout(left_col, 3)

        # Right column: controls
        right_col = QVBoxLayout()

        self.state_lbl = QLabel("Loading")
        self.state_lbl.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.state_lbl.setStyleSheet("font-size:16px; font-weight:800;")
        right_col.addWidget(self.state_lbl)

        brake_box = QGroupBox("Brake")
        brake_v = QVBoxLayout(brake_box)
        self.brake_slider = QSlider(Qt.Orientation.Horizontal)
        self.brake_slider.setRange(0, 100)
        self.brake_slider.setFocusPolicy(Qt.FocusPolicy.NoFocus)
        brake_v.addWidget(self.brake_slider)
        right_col.addWidget(brake_box)

        throttle_row = QHBoxLayout()
        for text, delta in (("Throttle -", -1), ("Throttle +", 1)):
            btn = QPushButton(text)
            btn.setFocusPolicy(Qt.FocusPolicy.NoFocus)
            btn.clicked.connect(lambda _=False, d=delta: self._step_throttle(d))
            throttle_row.addWidget(btn)
        right_col.addLayout(throttle_row)

        horn_btn = QPushButton("Horn")
        horn_btn.setFocusPolicy(Qt.FocusPolicy.NoFocus)
        horn_btn.clicked.connect(self._sound_horn)
        right_col.addWidget(horn_btn)

        self.ebutton = QPushButton("EMERGENCY BRAKE")
        self.ebutton.setFocusPolicy(Qt.FocusPolicy.NoFocus)
        self.ebutton.setStyleSheet(
            "background:#d33232; color:white; font-weight:1000; padding:16px;"
        )
        self.ebutton.clicked.connect(self._request_emergency)
        right_col.addWidget(self.ebutton)

        release_btn = QPushButton("Release Emergency")
        release_btn.setFocusPolicy(Qt.FocusPolicy.NoFocus)
        release_btn.clicked.connect(self._release_emergency)
        right_col.addWidget(release_btn)

        session_row = QHBoxLayout()
        self.start_btn = QPushButton("Start")
        self.pause_btn = QPushButton("Pause")
        restart_btn = QPushButton("Restart")
        for btn in (self.start_btn, self.pause_btn, restart_btn):
            btn.setFocusPolicy(Qt.FocusPolicy.NoFocus)
            session_row.addWidget(btn)
        self.start_btn.clicked.connect(self.driver.start)
        self.pause_btn.clicked.connect(self.driver.toggle_pause)
        restart_btn.clicked.connect(self.driver.restart)
        right_col.addLayout(session_row)
        right_col.addStretch(1)
        root.addLayout(right_col, 2)

        self._frame_timer = QTimer(self)
        self._frame_timer.timeout.connect(self._on_frame)
        self._frame_timer.start(FRAME_INTERVAL_MS)

        self.refresh_display(self.driver.snapshot)

    def _make_section(self, title_text: str,
                      rows: tuple[tuple[str, str], ...]
                      ) -> tuple[QGroupBox, Dict[str, QLabel]]:
        """Create a labeled data section with rows of labels.

        Args:
            title_text: Section title.
            rows: Tuple of (label_text, key) pairs for each row.

        Returns:
            Tuple of (QGroupBox, dict of key->QLabel mappings).
        """
        box = QGroupBox(title_text)
        box.setStyleSheet("QGroupBox {font-weight:800; font-size: 14px;}")
        grid = QGridLayout(box)
        grid.setHorizontalSpacing(14)
        grid.setVerticalSpacing(6)
        labels: Dict[str, QLabel] = {}
        for r, (label_text, key) in enumerate(rows):
            t = QLabel(label_text)
            t.setStyleSheet("font-weight:700; font-size:12px;")
            v = QLabel("—")
            v.setAlignment(Qt.AlignmentFlag.AlignCenter)
            v.setStyleSheet(
                "background:white; color:black; padding:6px; "
                "border:1px solid #444; min-width:120px; font-size:12px;"
            )
            labels[key] = v
            grid.addWidget(t, r, 0)
            grid.addWidget(v, r, 1)
        return box, labels

    # ---- operator input ----
    def _step_throttle(self, delta: int) -> None:
        self._throttle_steps += delta

    def _sound_horn(self) -> None:
        self._horn = True

    def _request_emergency(self) -> None:
        self._emergency_request = True

    def _release_emergency(self) -> None:
        self._emergency_release = True

    def keyPressEvent(self, event) -> None:
        key = event.key()
        if event.isAutoRepeat():
            return
        self._held_keys.add(key)
        if key in (Qt.Key.Key_H.value, Qt.Key.Key_Space.value):
            self._sound_horn()
        elif key == Qt.Key.Key_E.value:
            self._request_emergency()
        elif key == Qt.Key.Key_R.value:
            self._release_emergency()
        elif key == Qt.Key.Key_P.value:
            self.driver.toggle_pause()
        else:
            super().keyPressEvent(event)

    def keyReleaseEvent(self, event) -> None:
        if event.isAutoRepeat():
            return
        self._held_keys.discard(event.key())
        super().keyReleaseEvent(event)

    def _collect_controls(self) -> ControlInputs:
        """Fold held keys and pending button presses into one tick's intents."""
        held = self._held_keys
        axis = 0.0
        if Qt.Key.Key_W.value in held or Qt.Key.Key_Up.value in held:
            axis += 1.0
        if Qt.Key.Key_S.value in held or Qt.Key.Key_Down.value in held:
            axis -= 1.0
        brake = 1.0 if Qt.Key.Key_B.value in held else self.brake_slider.value() / 100.0

        controls = ControlInputs(
            throttle_axis=axis,
            throttle_step=self._throttle_steps,
            brake_intent=brake,
            horn=self._horn,
            emergency_brake_request=self._emergency_request,
            emergency_brake_release=self._emergency_release,
        )
        self._throttle_steps = 0
        self._horn = False
        self._emergency_request = False
        self._emergency_release = False
        return controls

    def _on_frame(self) -> None:
        # Presses made while paused or stopped are dropped, not replayed later
        controls = self._collect_controls()
        if self.driver.session_state is SessionState.RUNNING:
            self.driver.set_controls(controls)
        self.driver.frame(time.perf_counter())

    # ---- display ----
    def refresh_display(self, s: TelemetrySnapshot) -> None:
        """Render a telemetry snapshot."""
        if SimulationEvent.HORN in s.events:
            QApplication.beep()

        self.speed_lbl.setText(f"{s.speed_kmh:.0f} km/h")
        self.hint_lbl.setText(s.active_hint_text)
        self.hint_lbl.setStyleSheet(
            "font-size:15px; padding:8px; border:1px solid #444; "
            "border-radius:4px; " + HINT_STYLES[s.hint_level]
        )

        self.cab_labels["limit"].setText(f"{s.speed_limit_kmh:.0f}")
        self.cab_labels["throttle"].setText(f"{s.throttle_pct:.0f}")
        self.cab_labels["brake"].setText(f"{s.brake_pct:.0f}")
        aspect = self.cab_labels["signal"]
        aspect.setText(s.signal_aspect.name.title())
        aspect.setStyleSheet(
            f"background:{ASPECT_COLOURS[s.signal_aspect]}; color:white; "
            "padding:6px; border:1px solid #444; font-weight:800;"
        )
        self.cab_labels["emergency"].setText("APPLIED" if s.emergency_brake else "Off")

        self.journey_labels["current"].setText(s.current_station_name)
        self.journey_labels["next"].setText(s.next_station_name)
        self.journey_labels["distance"].setText(f"{s.distance_to_next_km:.2f}")
        self.journey_labels["passengers"].setText(f"{s.passengers} / {s.capacity}")
        self.journey_labels["dwell"].setText(
            "—" if s.dwell_seconds_remaining is None
            else f"{s.dwell_seconds_remaining:.0f}")
        self.journey_labels["score"].setText(f"{s.score:.0f}")
        self.journey_labels["violations"].setText(str(s.safety_violations))
        self.journey_labels["overruns"].setText(str(s.overruns))
        self.journey_labels["comfort"].setText(f"{s.comfort * 100:.1f}%")
        self.journey_labels["time"].setText(s.elapsed_time)

        self.progress.setValue(int(s.route_progress_pct * 10))
        self.state_lbl.setText(s.session_state.name.title())
        self.start_btn.setEnabled(s.session_state is SessionState.LOADING)
        self.pause_btn.setText(
            "Resume" if s.session_state is SessionState.PAUSED else "Pause")
