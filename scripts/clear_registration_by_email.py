"""
Reset a stuck signup checkpoint so the person starts the wizard fresh.
Does not touch completed accounts' credentials.
Usage: python scripts/clear_registration_by_email.py <email>
"""
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from wellbank.database import SessionLocal
from wellbank.services.registration import RegistrationCoordinator
from wellbank.services.registration_store import PersistenceError, RegistrationStore


def main():
    # Exact match: identities are case-sensitive
    email = (sys.argv[1] if len(sys.argv) > 1 else "").strip()
    if not email:
        print("Usage: python scripts/clear_registration_by_email.py <email>")
        sys.exit(1)

    db = SessionLocal()
    try:
        coordinator = RegistrationCoordinator(RegistrationStore(db))
        before = coordinator.resume_by_email(email)
        coordinator.clear_state(email)
        if before is None:
            print(f"No resumable registration for {email}; checkpoint reset anyway.")
        else:
            print(f"Cleared registration for {email} (was at step {before.step}).")
    except PersistenceError as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
