#!/usr/bin/env python3
"""
Script to completely reset the lifecycle state in the configured store.
This will delete:
- All organ records
- All transfer requests
- All ledger events

The store is picked the same way the API picks it: the database when
DATABASE_URL is set, otherwise SNAPSHOT_FILE.

⚠️  WARNING: This is a destructive operation that cannot be undone!
Stop the API first; a running server keeps its own copy of the state and
will write it back on its next change.

Usage: python scripts/reset_state.py
       python scripts/reset_state.py --confirm  # Skip confirmation prompt
"""
import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from organflow.core.config import settings
from organflow.core.exceptions import PersistenceError
from organflow.services.lifecycle_manager import OrganLifecycleManager
from organflow.services.snapshot_store import build_snapshot_store


def reset_state(skip_confirmation: bool = False):
    """
    Clear organs, requests and ledger events from the configured store.

    Args:
        skip_confirmation: If True, skip the confirmation prompt
    """
    manager = OrganLifecycleManager(
        store=build_snapshot_store(settings),
        persist_timeout=settings.PERSIST_TIMEOUT_SECONDS,
    )

    try:
        manager.load()
        analytics = manager.get_analytics()

        print("=" * 60)
        print(f"STATE RESET - Current Data Summary ({manager.store.name} store)")
        print("=" * 60)
        print(f"Organs:            {analytics.total_organs}")
        print(f"Transfer requests: {len(manager.list_requests())}")
        print(f"Ledger events:     {analytics.ledger_events}")
        print("=" * 60)

        if manager.is_empty:
            print("✅ Store is already empty. Nothing to reset.")
            return

        if not skip_confirmation:
            print("\n⚠️  WARNING: This will PERMANENTLY DELETE all organs, requests and ledger events!")
            print("   This operation CANNOT be undone.")

            response = input("\n   Are you absolutely sure you want to proceed? (type 'RESET' to confirm): ")
            if response != "RESET":
                print("❌ Operation cancelled")
                return

        removed = manager.reset()
        manager.flush()

        print("\n" + "=" * 60)
        print("✅ STATE RESET COMPLETE")
        print("=" * 60)
        print(f"Organs deleted:        {removed['organs_removed']}")
        print(f"Requests deleted:      {removed['requests_removed']}")
        print(f"Ledger events deleted: {removed['ledger_events_removed']}")

    except PersistenceError as e:
        print(f"\n❌ Error resetting state: {e}")
        sys.exit(1)
    finally:
        manager.close()


if __name__ == "__main__":
    skip_confirmation = "--confirm" in sys.argv or "-y" in sys.argv

    try:
        reset_state(skip_confirmation=skip_confirmation)
    except KeyboardInterrupt:
        print("\n\n❌ Operation cancelled by user")
        sys.exit(1)
