"""
Run every job on its calendar until SIGINT/SIGTERM
--------------------------------------------------
discovery 02:00 daily, cleanup 03:00 Sundays, enrichment 04:00 daily,
geography 05:00 daily (SCHEDULER_TIMEZONE, America/Bogota by default).
"""

import sys
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(PROJECT_ROOT / ".env")

sys.path.insert(0, str(PROJECT_ROOT))

from placekeeper.cli import main


if __name__ == "__main__":
    sys.exit(main(["all", "--scheduler", *sys.argv[1:]]))
