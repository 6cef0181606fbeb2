"""
Root conftest.py for pytest configuration
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.absolute()
SRC_PATH = PROJECT_ROOT / "src"

# src for the package itself, the project root so tests can import tests.helpers
sys.path.insert(0, str(SRC_PATH))
sys.path.insert(0, str(PROJECT_ROOT))
