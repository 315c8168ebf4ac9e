"""
Root conftest: puts the repo root on sys.path so `core`, `adapters`,
`config` and `main` import without an install.
"""

import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

logger = logging.getLogger(__name__)
