"""
Add signup checkpoint columns to users table to match wellbank.models.user.User.
For a NEW database: not needed; create_all creates them.
Run once on an EXISTING DB: python scripts/migrate_users_registration_columns.py (from project root)
"""
import os
import sys

# Project root
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from sqlalchemy import inspect, text
from wellbank.database import engine

# Columns that User model expects: (name, full SQL type for PostgreSQL)
COLUMNS = [
    ("registration_step", "INTEGER NOT NULL DEFAULT 0"),
    ("registration_data", "JSONB"),
    ("registration_token", "VARCHAR(128)"),
    ("registration_token_expires_at", "TIMESTAMP WITH TIME ZONE"),
]


def main():
    insp = inspect(engine)
    existing = {c["name"] for c in insp.get_columns("users")}
    with engine.begin() as conn:
        for name, sql_type in COLUMNS:
            if name in existing:
                print(f"  skip (exists): users.{name}")
                continue
            conn.execute(text(f'ALTER TABLE users ADD COLUMN "{name}" {sql_type}'))
            print(f"  added: users.{name}")
        # Placeholder rows now exist before a password is chosen
        conn.execute(text("ALTER TABLE users ALTER COLUMN hashed_password DROP NOT NULL"))
        print("  users.hashed_password is nullable")
    print("Done. users table now matches the model.")


if __name__ == "__main__":
    main()
