"""Seed sample customers and companies into the configured storage backend.

Usage:
    STORAGE_BACKEND=sql DATABASE_URL=sqlite:///partner_bff.db python scripts/seed.py
    python scripts/seed.py --only companies
"""
from __future__ import annotations
import argparse
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from partner_bff.config import load_settings
from partner_bff.core.exceptions import ConflictError
from partner_bff.core.registry import ServiceRegistry, build_services

SAMPLE_CUSTOMERS = [
    {
        "identification": "12345678901",
        "name": "John",
        "lastname": "Doe",
        "dateBorn": "1990-01-15",
        "gender": "male",
        "status": "active",
    },
    {
        "identification": "23456789012",
        "name": "Jane",
        "lastname": "Smith",
        "dateBorn": "1985-03-20",
        "gender": "female",
        "status": "active",
    },
    {
        "identification": "34567890123",
        "name": "Bob",
        "lastname": "Johnson",
        "dateBorn": "1992-07-10",
        "gender": "male",
        "status": "pending",
    },
]

SAMPLE_COMPANIES = [
    {
        "identification": "900123456",
        "name": "Acme Corporation",
        "alias": "Acme",
        "address": "123 Main Street, Springfield",
        "status": "active",
    },
    {
        "identification": "900654321",
        "name": "Globex",
        "alias": "Globex Corp",
        "address": "42 Industrial Avenue, Cypress Creek",
        "status": "pending",
    },
]


def seed(services: ServiceRegistry, only: str | None = None) -> dict[str, dict[str, int]]:
    """Create the sample records, skipping identifications already taken.

    Returns:
        Per-resource counts: {"customers": {"created": n, "skipped": m}, ...}
    """
    plan = {
        "customers": (services.customers, SAMPLE_CUSTOMERS),
        "companies": (services.companies, SAMPLE_COMPANIES),
    }
    summary: dict[str, dict[str, int]] = {}
    for resource, (service, samples) in plan.items():
        if only and resource != only:
            continue
        created = skipped = 0
        for payload in samples:
            try:
                entity = service.create(dict(payload))
                created += 1
                print(f"[seed] ✓ {resource}: {entity.identification} ({entity.id})")
            except ConflictError:
                skipped += 1
                print(f"[seed] - {resource}: {payload['identification']} already exists, skipped")
        summary[resource] = {"created": created, "skipped": skipped}
    return summary


def main() -> None:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(description="Seed sample partner hub data")
    parser.add_argument("--only", choices=["customers", "companies"], help="Seed a single resource")
    args = parser.parse_args()

    cfg = load_settings()
    if cfg.storage_backend == "memory":
        print("[seed] WARNING: STORAGE_BACKEND=memory - seeded data disappears when this script exits")

    summary = seed(build_services(cfg), only=args.only)
    for resource, counts in summary.items():
        print(f"[seed] {resource}: created={counts['created']} skipped={counts['skipped']}")


if __name__ == "__main__":
    main()
