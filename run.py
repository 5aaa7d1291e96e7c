"""Run the moviegraph CLI from a source checkout.

  python run.py cypher "What role did Tom Hanks play in Toy Story?"
  python run.py vector --session-id demo "best Tom Hanks movies"
  python run.py ingest data/movies.csv
"""

from __future__ import annotations

import sys
from pathlib import Path

SRC_DIR = Path(__file__).resolve().parent / "src"

if __name__ == "__main__":
    if str(SRC_DIR) not in sys.path:
        sys.path.insert(0, str(SRC_DIR))

    from moviegraph.cli import main

    raise SystemExit(main())
