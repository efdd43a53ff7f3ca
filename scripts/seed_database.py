"""
CLI helper to load the sample categories, wallpapers and settings into the
configured tree store, or to wipe it.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from wallpaper_plus.dependencies import get_tree_store
from wallpaper_plus.seed import clear_database, seed_database


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed the wallpaper database")
    parser.add_argument(
        "--clear",
        action="store_true",
        help="Remove every node instead of seeding",
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Skip the confirmation prompt for --clear",
    )
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)

    store = get_tree_store()
    if args.clear:
        if not args.yes:
            answer = input("This deletes ALL data. Type 'yes' to continue: ")
            if answer.strip().lower() != "yes":
                print("Aborted.")
                return 1
        result = clear_database(store)
    else:
        result = seed_database(store)
    print(json.dumps(result, indent=2))
    return 0 if result.get("success") else 1


if __name__ == "__main__":
    sys.exit(main())
