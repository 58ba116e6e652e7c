"""
This file configures pytest.

pip install -e ".[test]"
pytest -q tests
"""

from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = PROJECT_ROOT / "src"

candidate_str = str(SRC_ROOT)
if candidate_str not in sys.path:
    sys.path.insert(0, candidate_str)
