"""
FILE: seed.py
Database seeder — demo clinic with a doctor, a head nurse and a pharmacist
Run: python seed.py
"""

import os

from sqlmodel import Session, select
from src.core.database import engine, create_db_and_tables
from src.core.security import generate_temp_password, hash_password
from src.identity.store import IdentityStore
from src.shared.models import Clinic, NurseShift, Post, PostCategory, Principal, PrincipalRole
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_CLINIC_EMAIL = os.getenv("DEMO_CLINIC_EMAIL", "admin@democlinic.example.com")

DEMO_STAFF = [
    {
        "role": PrincipalRole.DOCTOR,
        "email": "doctor@democlinic.example.com",
        "full_name": "Dr. Ada Okafor",
        "uhid": "DOC-0001",
        "specialty": "Family Medicine",
    },
    {
        "role": PrincipalRole.HEAD_NURSE,
        "email": "nurse@democlinic.example.com",
        "full_name": "Grace Bello",
        "uhid": "NUR-0001",
        "departments": ["Outpatient", "Triage"],
        "shift": NurseShift.DAY,
    },
    {
        "role": PrincipalRole.PHARMACIST,
        "email": "pharmacist@democlinic.example.com",
        "full_name": "Tunde Adeyemi",
        "uhid": "PHA-0001",
        "specialization": "Clinical Pharmacy",
    },
]


def _password(env_name: str) -> str:
    return os.getenv(env_name) or generate_temp_password(14)


def seed_clinic(store: IdentityStore) -> Clinic:
    existing = store.find_by_email(PrincipalRole.CLINIC, DEMO_CLINIC_EMAIL)
    if existing:
        logger.info(f"  ✓ Demo clinic already exists: {DEMO_CLINIC_EMAIL}")
        return existing  # type: ignore[return-value]

    password = _password("DEMO_CLINIC_PASSWORD")
    clinic = store.create(
        PrincipalRole.CLINIC,
        {
            "email": DEMO_CLINIC_EMAIL,
            "password_hash": hash_password(password),
            "name": "Demo Family Clinic",
            "admin_name": "Clinic Administrator",
            "city": "Lagos",
            "country": "Nigeria",
            "registration_number": "CLN-DEMO-001",
            "email_verified": True,
        },
    )
    logger.info(f"  ✓ Clinic: {clinic.email} | password: {password}")
    return clinic


def seed_staff(store: IdentityStore, clinic: Clinic) -> list:
    members = []
    for entry in DEMO_STAFF:
        values = dict(entry)
        role = values.pop("role")
        existing = store.find_by_email(role, values["email"])
        if existing:
            logger.info(f"  ✓ {role.value} already exists: {values['email']}")
            members.append(existing)
            continue

        password = _password(f"DEMO_{role.value.upper()}_PASSWORD")
        values.update(
            password_hash=hash_password(password),
            clinic_id=clinic.id,
            email_verified=True,
        )
        member = store.create(role, values)
        logger.info(f"  ✓ {role.value}: {member.email} | password: {password}")
        members.append(member)
    return members


def seed_welcome_post(session: Session, clinic: Clinic, author: Principal) -> None:
    if session.exec(select(Post).where(Post.clinic_id == clinic.id)).first():
        logger.info("  ✓ Feed already has posts")
        return
    post = Post(
        clinic_id=clinic.id,
        author_id=author.id,
        author_role=author.role,
        author_name=author.full_name,
        title="Welcome to the clinic feed",
        content="Share health tips and updates with the rest of the team here.",
        category=PostCategory.GENERAL,
        tags=["welcome"],
    )
    session.add(post)
    session.commit()
    logger.info("  ✓ Welcome post")


def main():
    logger.info("🌱 Starting database seeding...")
    create_db_and_tables()

    with Session(engine) as session:
        store = IdentityStore(session)

        logger.info("\n🏥 Seeding demo clinic...")
        clinic = seed_clinic(store)

        logger.info("\n👥 Seeding demo staff...")
        members = seed_staff(store, clinic)

        logger.info("\n📝 Seeding feed...")
        seed_welcome_post(session, clinic, members[0])

    logger.info("\n✅ Seeding complete!")
    logger.info("─" * 50)
    logger.info("Demo credentials:")
    logger.info(f"  Clinic admin : {DEMO_CLINIC_EMAIL}")
    for entry in DEMO_STAFF:
        logger.info(f"  {entry['role'].value:<13}: {entry['email']}")
    logger.info("  (Passwords printed above or taken from .env)")


if __name__ == "__main__":
    main()
