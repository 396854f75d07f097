from __future__ import annotations

"""Create the scheduling tables and seed the global scheduling policy row.

Only missing tables are created; an existing scheduling_config row is left as is.

Run:
  python -m migrations.001_create_scheduling_schema --yes

Or, against another database:
  python backend/migrations/001_create_scheduling_schema.py --database-url sqlite:///local.db --yes
"""

import argparse
import sys
from pathlib import Path

# Allow running this script from any working directory.
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import inspect, select
from sqlalchemy.orm import Session
from sqlalchemy.schema import CreateTable

import models  # noqa: F401  (registers every table on Base.metadata)
from core.database import ENGINE, get_engine
from models.base import Base
from models.scheduling_config import SchedulingConfig


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--yes", action="store_true", help="Actually apply changes")
    parser.add_argument("--database-url", default=None, help="Target database (defaults to DATABASE_URL)")
    parser.add_argument("--no-seed", action="store_true", help="Skip inserting the default global policy row")
    args = parser.parse_args()

    engine = get_engine(args.database_url) if args.database_url else ENGINE
    existing = set(inspect(engine).get_table_names())
    missing = [t for t in Base.metadata.sorted_tables if t.name not in existing]

    if not args.yes:
        print(f"Dry run against {engine.url.render_as_string(hide_password=True)}. Re-run with --yes to apply.")
        if not missing:
            print("All scheduling tables already exist.")
        for table in missing:
            print("---")
            print(str(CreateTable(table).compile(engine)).strip())
        return

    Base.metadata.create_all(engine, tables=missing)
    print(f"OK: created {len(missing)} table(s): {', '.join(t.name for t in missing) or '-'}")

    if args.no_seed:
        return
    with Session(engine) as db:
        if db.execute(select(SchedulingConfig.id).limit(1)).first() is None:
            db.add(SchedulingConfig())
            db.commit()
            print("OK: seeded default global scheduling policy.")
        else:
            print("Global scheduling policy already present.")


if __name__ == "__main__":
    main()
