#!/usr/bin/env python3
"""
Demo initialization script.
Creates the demo users (alice, bob, charlie; password 123456).

Only meaningful with a file-backed DATABASE_URL, e.g.
    DATABASE_URL=sqlite:///./acto.db python scripts/seed_demo.py

Run from repository root: python scripts/seed_demo.py
"""
import sys
import os

# Ensure repo root is on path when run as scripts/seed_demo.py
_repo_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _repo_root not in sys.path:
    sys.path.insert(0, _repo_root)

from acto.core.memory.db import init_db, db_session
from acto.core.services.demo_users import DEMO_PASSWORD, seed_demo_users


def init_demo():
    """Initialize demo data."""
    init_db()

    with db_session() as db:
        created = seed_demo_users(db)
        if not created:
            print("✅ Demo users already exist")
        for identity in created:
            print(f"✅ Created demo user @{identity.handle} ({identity.display_name})")
        return len(created)


if __name__ == "__main__":
    init_demo()
    print(f"\n🎉 Demo initialized! Password for all demo users: {DEMO_PASSWORD}")
    print(f"\nNext steps:")
    print(f"1. Start the server: python -m acto.core.main")
    print(f"2. Log in as alice, bob or charlie")
