from __future__ import annotations

import logging
import sys
import threading
import time
from typing import List, Optional

from simulator.config.settings import SimulatorSettings
from simulator.core.field_state import FieldState
from simulator.core.simulator_engine import SimulatorEngine, build_sensors
from simulator.transport.rtdb_server import create_app

log = logging.getLogger(__name__)


def build_engine(state: FieldState, settings: SimulatorSettings) -> SimulatorEngine:
    return SimulatorEngine(state=state, sensors=build_sensors(state, seed=settings.seed), settings=settings)


def step_loop(engine: SimulatorEngine, period_s: float, stop_flag: threading.Event) -> None:
    last = time.perf_counter()
    while not stop_flag.wait(period_s):
        now = time.perf_counter()
        dt = now - last
        last = now
        try:
            engine.step(dt)
        except Exception:
            log.exception("[SIM] step failed")


def main(argv: Optional[List[str]] = None) -> None:
    """
    Serve a simulated realtime database over HTTP.

    Optional CLI usage:
        python -m simulator.run_simulator --port 8700
    """
    argv = sys.argv if argv is None else argv
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    settings = SimulatorSettings()
    port = settings.port
    if "--port" in argv:
        i = argv.index("--port")
        if i + 1 < len(argv):
            port = int(argv[i + 1])

    # Shared state for HTTP + engine
    state = FieldState()
    engine = build_engine(state, settings)

    stop_flag = threading.Event()
    t = threading.Thread(target=step_loop, args=(engine, settings.step_period_s, stop_flag), daemon=True)
    t.start()

    app = create_app(state)
    print(f"[SIM] Serving realtime database on http://{settings.host}:{port}/.json")
    try:
        app.run(host=settings.host, port=port, debug=False)
    finally:
        stop_flag.set()


if __name__ == "__main__":
    main()
