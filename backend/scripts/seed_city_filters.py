"""
Seed the city filter registry with the default cities of every destination.
Destinations that already have rows are left alone; --reset drops and
recreates the table first.
Run: python scripts/seed_city_filters.py [--reset]
"""

import os
import sys

# Add backend directory to path for tripsee imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tripsee.db.database import SessionLocal, engine, init_db
from tripsee.db.models import CityFilter
from tripsee.db.repositories import CityFilterRepository
from tripsee.services.destinations import all_profiles


def main(reset: bool = False) -> int:
    print(f"Database: {engine.url}")

    if reset:
        CityFilter.__table__.drop(engine, checkfirst=True)
        print("Dropped city_filters")
    init_db()

    db = SessionLocal()
    try:
        repo = CityFilterRepository(db)
        added = repo.seed_defaults()
        print(f"Inserted {added} city filters")
        for profile in all_profiles():
            names = [c.name for c in repo.get_cities(profile.slug)]
            print(f"  {profile.slug:<10} {len(names):>2}  {', '.join(names)}")
    finally:
        db.close()
    return added


if __name__ == "__main__":
    main(reset="--reset" in sys.argv[1:])
