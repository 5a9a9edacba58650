import sys
import logging

from PyQt6.QtWidgets import QApplication

from simulation.simulation_driver import SimulationDriver
from simulation.simulation_ui import CabWindow
from trackModel.track_model_backend import DEFAULT_ROUTE
from universal.config import DEFAULT_CONFIG


def main():
    logging.basicConfig(level=logging.INFO)

    app = QApplication(sys.argv)

    driver = SimulationDriver(DEFAULT_ROUTE, DEFAULT_CONFIG)
    cab = CabWindow(driver)
    cab.show()

    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
