"""Catalog client test suite.

Module suites sit under ``tests/pokedex/`` next to their shared doubles in
``tests/pokedex/support``; composition-root and settings tests stay at this
level. The checkout root is added to ``sys.path`` so the uninstalled
``pokedex`` namespace package imports the same way it does once installed.
"""

from __future__ import annotations

import sys
from pathlib import Path

CHECKOUT_ROOT: Path = Path(__file__).resolve().parents[1]

if str(CHECKOUT_ROOT) not in sys.path:
    sys.path.insert(0, str(CHECKOUT_ROOT))
