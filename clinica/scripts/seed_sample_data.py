"""
Seed Sample Data Script
Signs in as an approved administrator and populates providers, clinic types,
medical assistants and a few shifts through the record stores, so every row
is validated and audited like any other write.

Run with: SEED_EMAIL=... SEED_PASSWORD=... python -m clinica.scripts.seed_sample_data
Items whose name already exists are left alone.
"""

import logging
import os
import sys
from datetime import date, time, timedelta

from clinica.config.settings import settings
from clinica.database.supabase_client import create_backend
from clinica.modules.audit.service import AuditLogger
from clinica.modules.auth.session import SessionContext
from clinica.modules.catalog.service import CatalogStore, ClinicTypeStore, MedicalAssistantStore, ProviderStore
from clinica.modules.shifts.schemas import RecurringFrequency, RecurringRule, ShiftCreate
from clinica.modules.shifts.service import ShiftStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SAMPLE_PROVIDERS = [
    ("Dr. Smith", "bg-red-500", True),
    ("Dr. Jones", "bg-orange-500", True),
    ("Nurse K.", "bg-amber-500", False),
    ("Dr. Garcia", "bg-yellow-500", True),
    ("Dr. Brown", "bg-lime-500", True),
]

SAMPLE_CLINIC_TYPES = [
    ("Emergency", "bg-green-500", True),
    ("Pediatrics", "bg-emerald-500", True),
    ("Surgery", "bg-teal-500", False),
    ("Cardiology", "bg-cyan-500", True),
]

SAMPLE_MEDICAL_ASSISTANTS = [
    ("Alex Chen", "bg-blue-500", True),
    ("Maria Garcia", "bg-indigo-500", True),
    ("Sam Lee", "bg-violet-500", False),
    ("Jordan Kim", "bg-purple-500", True),
]


def seed_catalog(store: CatalogStore, items, actor) -> int:
    """Add the items whose name is not taken yet"""
    store.fetch_all()
    existing = {item.name for item in store.data}
    created_count = 0
    for name, color, is_active in items:
        if name in existing:
            logger.debug(f"Skipping existing {store.label.lower()}: {name}")
            continue
        if store.add(name, color, is_active, actor=actor) is None:
            logger.error(f"Error creating {store.label.lower()} {name}: {store.error}")
            continue
        created_count += 1
    logger.info(f"{store.label} seeded: {created_count} created")
    return created_count


def seed_shifts(shifts: ShiftStore, providers: ProviderStore, clinics: ClinicTypeStore,
                assistants: MedicalAssistantStore, actor) -> int:
    shifts.fetch_all()
    if shifts.data:
        logger.info("Shifts already present, skipping")
        return 0
    active_providers = providers.active()
    active_clinics = clinics.active()
    active_assistants = assistants.active()
    if len(active_providers) < 2 or not active_clinics:
        logger.warning("Not enough providers or clinic types to seed shifts")
        return 0

    today = date.today()
    samples = [
        ShiftCreate(
            provider_id=active_providers[0].id,
            clinic_type_id=active_clinics[0].id,
            medical_assistant_ids=[a.id for a in active_assistants[:1]],
            start_date=today,
            end_date=today,
            start_time=time(9, 0),
            end_time=time(17, 0),
        ),
        ShiftCreate(
            provider_id=active_providers[1].id,
            clinic_type_id=active_clinics[-1].id,
            start_date=today,
            end_date=today,
            start_time=time(8, 0),
            end_time=time(12, 0),
            recurring_rule=RecurringRule(
                frequency=RecurringFrequency.WEEKLY,
                days_of_week=[1, 3, 5],
                end_date=today + timedelta(days=90),
            ),
        ),
        ShiftCreate(
            provider_id=active_providers[0].id,
            start_date=today + timedelta(days=14),
            end_date=today + timedelta(days=18),
            is_vacation=True,
            notes="Annual leave",
        ),
    ]
    by_id = {p.id: p for p in active_providers}
    clinic_by_id = {c.id: c for c in active_clinics}
    created_count = 0
    for sample in samples:
        shift = shifts.add_shift(
            sample,
            provider=by_id.get(sample.provider_id),
            clinic=clinic_by_id.get(sample.clinic_type_id),
            actor=actor,
        )
        if shift is None:
            logger.error(f"Error creating shift: {shifts.error}")
            continue
        created_count += 1
    logger.info(f"Shifts seeded: {created_count} created")
    return created_count


def main():
    email = os.environ.get("SEED_EMAIL")
    password = os.environ.get("SEED_PASSWORD")
    if not email or not password:
        logger.error("Set SEED_EMAIL and SEED_PASSWORD to an approved administrator account")
        sys.exit(1)

    backend = create_backend(settings)
    session = SessionContext(backend, settings)
    result = session.sign_in(email, password)
    if not result.success:
        logger.error(f"Sign in failed: {result.error}")
        sys.exit(1)
    if not session.can_write() or session.is_degraded:
        logger.error("Signed-in account may not write schedule data")
        session.sign_out()
        sys.exit(1)

    audit = AuditLogger(backend)
    providers = ProviderStore(backend, audit)
    clinics = ClinicTypeStore(backend, audit)
    assistants = MedicalAssistantStore(backend, audit)
    shifts = ShiftStore(backend, audit)
    session.attach(providers, clinics, assistants, shifts)

    try:
        actor = session.actor
        seed_catalog(providers, SAMPLE_PROVIDERS, actor)
        seed_catalog(clinics, SAMPLE_CLINIC_TYPES, actor)
        seed_catalog(assistants, SAMPLE_MEDICAL_ASSISTANTS, actor)
        seed_shifts(shifts, providers, clinics, assistants, actor)
        logger.info("Seeding completed successfully!")
    finally:
        session.sign_out()
        session.close()


if __name__ == "__main__":
    main()
