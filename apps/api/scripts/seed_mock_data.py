"""
Seed script to create mock citizens, staff, document requests, complaints
and announcements for local development.
Run with: python -m scripts.seed_mock_data
"""

import os
import random
from datetime import datetime, timedelta, timezone

from app.db.enums import AnnouncementCategory, ComplaintStatus, DocumentType, Role
from app.db.models import Announcement, Complaint, DocumentRequest, Profile, StaffMember
from app.db.session import SessionLocal
from app.services import document_workflow_service

# Sample data pools
FIRST_NAMES = [
    "Aarav", "Vihaan", "Aditya", "Sai", "Arjun", "Reyansh", "Krishna", "Ishaan",
    "Ananya", "Diya", "Saanvi", "Aadhya", "Pari", "Kavya", "Meera", "Lakshmi",
    "Ramesh", "Suresh", "Sunita", "Geeta", "Mohan", "Savita", "Prakash", "Anil",
]

LAST_NAMES = [
    "Patil", "Jadhav", "Pawar", "Shinde", "Deshmukh", "Kulkarni", "More",
    "Gaikwad", "Chavan", "Kale", "Bhosale", "Salunkhe", "Kadam", "Mane",
]

DESIGNATIONS = ["Gram Sevak", "Clerk", "Talathi", "Data Entry Operator", "Sarpanch Office"]

PURPOSES = [
    "School admission",
    "Bank account opening",
    "Scholarship application",
    "Passport application",
    "Government scheme enrolment",
    "Land record update",
]

ANNOUNCEMENTS = [
    ("Gram Sabha meeting on Sunday", AnnouncementCategory.GOVERNANCE, True),
    ("Water supply interrupted for pipeline repair", AnnouncementCategory.INFRASTRUCTURE, True),
    ("Road resurfacing near the market", AnnouncementCategory.PUBLIC_WORKS, False),
    ("Vaccination camp at the primary health centre", AnnouncementCategory.HEALTH, False),
    ("PM-KISAN registration drive", AnnouncementCategory.AGRICULTURE, False),
    ("Independence Day celebrations", AnnouncementCategory.EVENT, False),
]

COMPLAINT_TITLES = [
    "Street light not working",
    "Drain blocked near the temple",
    "Irregular water supply",
    "Garbage not collected",
]


def random_name() -> str:
    return f"{random.choice(FIRST_NAMES)} {random.choice(LAST_NAMES)}"


def random_phone() -> str:
    return f"+91 9{random.randint(100000000, 999999999)}"


def create_profiles(db, count: int, role: Role, prefix: str) -> list[Profile]:
    profiles = []
    for idx in range(count):
        name = random_name()
        profile = Profile(
            name=name,
            email=f"{prefix}{idx + 1}@panchayat.test",
            phone=random_phone(),
            role=role.value,
        )
        db.add(profile)
        profiles.append(profile)
    db.flush()
    return profiles


def create_staff(db, profiles: list[Profile]) -> list[StaffMember]:
    now = datetime.now(timezone.utc)
    staff = []
    for profile in profiles:
        member = StaffMember(
            user_id=profile.id,
            designation=random.choice(DESIGNATIONS),
            joined_at=now - timedelta(days=random.randint(30, 900)),
        )
        db.add(member)
        staff.append(member)
    db.flush()
    return staff


def create_document_requests(db, citizens: list[Profile], count: int) -> list[DocumentRequest]:
    now = datetime.now(timezone.utc)
    requests = []
    for _ in range(count):
        citizen = random.choice(citizens)
        request = DocumentRequest(
            user_id=citizen.id,
            document_type=random.choice(list(DocumentType)).value,
            purpose=random.choice(PURPOSES),
            attachments=[],
            form_details={},
            created_at=now - timedelta(days=random.randint(0, 60)),
        )
        db.add(request)
        requests.append(request)
    db.commit()
    return requests


def advance_document_requests(db, requests: list[DocumentRequest], reviewers: list[Profile]) -> None:
    """Push a share of the requests through the workflow so every state is represented."""
    for request in requests:
        roll = random.random()
        reviewer = random.choice(reviewers)
        if roll < 0.3:
            continue
        if roll < 0.45:
            document_workflow_service.reject(
                db, request.id, reviewer.id, "Supporting documents missing"
            )
            continue
        document_workflow_service.verify(db, request.id, reviewer.id)
        if roll < 0.7:
            continue
        document_workflow_service.approve(db, request.id, random.choice(reviewers).id)


def create_complaints(db, citizens: list[Profile], reviewers: list[Profile], count: int) -> None:
    for _ in range(count):
        db.add(
            Complaint(
                user_id=random.choice(citizens).id,
                title=random.choice(COMPLAINT_TITLES),
                status=random.choice(list(ComplaintStatus)).value,
                assigned_to=random.choice(reviewers).id,
            )
        )
    db.commit()


def create_announcements(db, admin: Profile) -> None:
    for title, category, important in ANNOUNCEMENTS:
        db.add(
            Announcement(
                title=title,
                content=f"{title}.\n\nContact the Panchayat office for details.",
                category=category.value,
                important=important,
                created_by=admin.id,
            )
        )
    db.commit()


def main():
    """Main entry point."""
    print("Seeding mock data...")
    random.seed(os.getenv("SEED_RANDOM", "panchayat"))

    db = SessionLocal()

    try:
        if db.query(Profile).first():
            print("ERROR: Database already has profiles. Seed an empty database.")
            return

        citizens = create_profiles(db, 20, Role.CITIZEN, "citizen")
        staff_profiles = create_profiles(db, 4, Role.STAFF, "staff")
        (admin,) = create_profiles(db, 1, Role.ADMIN, "admin")
        create_staff(db, staff_profiles + [admin])
        db.commit()
        print(f"Created {len(citizens)} citizens, {len(staff_profiles)} staff and 1 admin")

        requests = create_document_requests(db, citizens, 40)
        advance_document_requests(db, requests, staff_profiles)
        print(f"Created {len(requests)} document requests")

        create_complaints(db, citizens, staff_profiles, 25)
        create_announcements(db, admin)

        print("\nMock data seeded successfully!")
    finally:
        db.close()


if __name__ == "__main__":
    main()
