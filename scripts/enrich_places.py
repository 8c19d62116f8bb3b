"""
Provider metadata enrichment for verified places
------------------------------------------------
Usage: python scripts/enrich_places.py [--manual|--scheduler] [options]
"""

import sys
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(PROJECT_ROOT / ".env")

sys.path.insert(0, str(PROJECT_ROOT))

from placekeeper.cli import main


if __name__ == "__main__":
    sys.exit(main(["enrichment", *sys.argv[1:]]))
