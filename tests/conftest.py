from __future__ import annotations

import sys
from pathlib import Path


# Make `wavesim/` importable when pytest runs a single test file from anywhere.
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))
