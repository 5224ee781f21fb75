from __future__ import annotations

import runpy
import sys
import traceback
from typing import List, Optional

# launcher name -> module run as __main__
TARGETS = {
    "app": "climaneer.dev.run_app",
    "simulator": "simulator.run_simulator",
    "webhook": "webhook_server.webhook_server",
}


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run one of the project programs, e.g. ``launch.py simulator --port 8700``.

    Intended as the single entry script of a frozen executable; remaining
    arguments are passed through to the target.
    """
    argv = list(sys.argv if argv is None else argv)
    if len(argv) < 2 or argv[1] not in TARGETS:
        print(f"usage: {argv[0] if argv else 'launch'} {{{'|'.join(TARGETS)}}} [args...]")
        return 2

    module = TARGETS[argv[1]]
    sys.argv = [module] + argv[2:]
    try:
        runpy.run_module(module, run_name="__main__")
    except Exception:
        traceback.print_exc()
        if getattr(sys, "frozen", False):
            input("\nPress Enter to exit...")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
