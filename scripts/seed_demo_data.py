#!/usr/bin/env python3
"""
Golden Bridge Women — Demo Data Seed Script.

Usage:
    python scripts/seed_demo_data.py
    python scripts/seed_demo_data.py --reset

Same data set as ``flask seed-demo``; see goldenbridge/seed.py.
"""

import argparse
import sys

sys.path.insert(0, ".")

from goldenbridge import create_app  # noqa: E402
from goldenbridge.models import db  # noqa: E402
from goldenbridge.seed import DEMO_PASSWORD, seed_demo_data  # noqa: E402


def main():
    parser = argparse.ArgumentParser(description="Seed demo data")
    parser.add_argument("--reset", action="store_true", help="drop and recreate all tables first")
    args = parser.parse_args()

    app = create_app()
    print(f"DB: {app.config['SQLALCHEMY_DATABASE_URI']}\n")
    with app.app_context():
        if args.reset:
            print("Dropping existing tables...")
            db.drop_all()
        db.create_all()
        created = seed_demo_data()

    for name, count in created.items():
        print(f"   {name:<12} +{count}")
    print(f"\nDemo accounts use the password '{DEMO_PASSWORD}'.")


if __name__ == "__main__":
    main()
