"""
Weekly cleanup: duplicates, old images, indexes and report
----------------------------------------------------------
Usage: python scripts/data_cleanup.py [--manual|--scheduler] [options]
"""

import sys
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(PROJECT_ROOT / ".env")

sys.path.insert(0, str(PROJECT_ROOT))

from placekeeper.cli import main


if __name__ == "__main__":
    sys.exit(main(["cleanup", *sys.argv[1:]]))
