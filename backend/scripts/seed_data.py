"""
Seed Data Script - Creates directory users for local testing
Run: python -m scripts.seed_data
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gatepass.repositories.mongo_client import create_indexes
from gatepass.repositories.user_repo import UserRepository
from gatepass.domain.models import UserRecord
from gatepass.domain.enums import UserRole


# service_no, name, role, branches
SAMPLE_USERS = [
    ("SV00001", "Nimal Perera", UserRole.USER, ["Colombo"]),
    ("SV11111", "Kamala Silva", UserRole.EXECUTIVE, ["Colombo"]),
    ("SV22222", "Ruwan Fernando", UserRole.VERIFIER, ["Colombo"]),
    ("SV33333", "Sunil Jayasuriya", UserRole.DISPATCHER, ["Colombo"]),
    ("SV35555", "Chamari Bandara", UserRole.PLEADER, ["Kandy"]),
    ("SV44444", "Ajith Rathnayake", UserRole.RECEIVER, ["Kandy"]),
    ("SV90000", "Gate Admin", UserRole.ADMIN, ["Colombo", "Kandy"]),
    ("SV99999", "System Owner", UserRole.SUPER_ADMIN, []),
]


def seed_users() -> int:
    repo = UserRepository()
    created = 0
    for service_no, name, role, branches in SAMPLE_USERS:
        if repo.get_by_service_no(service_no):
            print(f"  {service_no} exists, skipping")
            continue
        repo.upsert_user(UserRecord(
            service_no=service_no,
            name=name,
            email=f"{service_no.lower()}@example.com",
            role=role,
            branches=branches
        ))
        created += 1
        print(f"  Created {service_no} ({role.value})")
    return created


def main():
    print("=== Seeding directory users ===")
    print("-" * 40)

    create_indexes()
    created = seed_users()

    print("-" * 40)
    print(f"Done! {created} users created.")


if __name__ == "__main__":
    main()
