from __future__ import annotations

import os
from pathlib import Path

# Per-user home for lgrep state (override with LGREP_HOME)
LGREP_HOME = Path(os.environ.get("LGREP_HOME") or Path.home() / ".lgrep")

LOG_DIR = LGREP_HOME / "logs"
