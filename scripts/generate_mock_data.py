#!/usr/bin/env python3
"""
Seed the configured store with the demo organs shown on the dashboard.

Usage: python scripts/generate_mock_data.py
       python scripts/generate_mock_data.py --force  # Seed even if the store already has data
"""
import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from organflow.core.config import settings
from organflow.core.exceptions import PersistenceError
from organflow.services.demo_data import seed_demo_data
from organflow.services.ledger_gateway import build_ledger_gateway
from organflow.services.lifecycle_manager import OrganLifecycleManager
from organflow.services.snapshot_store import build_snapshot_store


def main(force: bool = False):
    manager = OrganLifecycleManager(
        store=build_snapshot_store(settings),
        ledger_gateway=build_ledger_gateway(settings),
        persist_timeout=settings.PERSIST_TIMEOUT_SECONDS,
        default_owning_hospital=settings.DEFAULT_OWNING_HOSPITAL,
    )
    try:
        manager.load()
        if not manager.is_empty and not force:
            print("ℹ Store already contains data; use --force to add the demo organs anyway")
            return

        count = seed_demo_data(manager)
        manager.flush()

        for organ in manager.list_organs():
            print(f"  ✓ #{organ.id} {organ.organ_type} ({organ.blood_type}) - {organ.status.value} @ {organ.hospital}")
        print(f"\n✅ Mock data generation complete: {count} organs")
    except PersistenceError as e:
        print(f"❌ Failed to seed demo data: {e}")
        sys.exit(1)
    finally:
        manager.close()


if __name__ == "__main__":
    main(force="--force" in sys.argv)
