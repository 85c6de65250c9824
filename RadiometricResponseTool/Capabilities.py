"""
Solver availability detected once at import time.

scipy is a declared dependency of the package, so ``SOLVER_AVAILABLE`` is
normally true.  The flag only matters for installs where scipy cannot be
imported (a stripped environment, a broken wheel).  There the robust
(Debevec) calibration raises ``MethodUnavailableError`` at construction and
the factory leaves it out of ``available_methods()``, while the alternating
(Engel) calibration, which needs numpy only, keeps working.
"""

import importlib.util

SOLVER_AVAILABLE = importlib.util.find_spec("scipy") is not None


def solver_available() -> bool:
    return SOLVER_AVAILABLE
