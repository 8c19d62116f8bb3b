"""
Fill in city, department and sector for places without a city
-------------------------------------------------------------
Usage: python scripts/geocode_places.py [--manual|--scheduler] [options]
"""

import sys
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(PROJECT_ROOT / ".env")

sys.path.insert(0, str(PROJECT_ROOT))

from placekeeper.cli import main


if __name__ == "__main__":
    sys.exit(main(["geography", *sys.argv[1:]]))
