from sqlmodel import Session, select

from db import engine
from models import HourEntry
from reconcile import submit

# (user_id, date, hour_type, hours, descriptive fields)
SAMPLE_SUBMISSIONS = [
    (
        "user_alice",
        "2024-01-15",
        "direct",
        3.0,
        {"modality": "In-person", "population": "Adults", "setting": "Private Practice", "diagnosis": "Anxiety"},
    ),
    ("user_alice", "2024-01-15", "indirect", 1.5, {"notes": "Progress notes"}),
    (
        "user_alice",
        "2024-01-16",
        "supervision",
        1.0,
        {"supervisor_name": "Dr. Rivera", "topics_discussed": "Case conceptualization"},
    ),
    (
        "user_alice",
        "2024-01-17",
        "direct",
        4.0,
        {"modality": "Telehealth", "population": "Adolescents", "setting": "School", "diagnosis": "Depression"},
    ),
    (
        "user_bob",
        "2024-01-15",
        "direct",
        2.5,
        {"modality": "Phone", "population": "Elderly", "setting": "Hospital", "diagnosis": "Other"},
    ),
    ("user_bob", "2024-01-16", "indirect", 2.0, {"notes": "Treatment planning"}),
]


def seed_database():
    """Seed the database with sample submissions."""
    with Session(engine) as session:
        # Check if data already exists
        existing = session.exec(select(HourEntry)).first()
        if existing:
            print("Database already has data, skipping seed.")
            return 0

        for user_id, day, hour_type, hours, fields in SAMPLE_SUBMISSIONS:
            submit(session, user_id, day, hour_type, hours, fields)

        print(f"Seeded database with {len(SAMPLE_SUBMISSIONS)} sample submissions.")
        return len(SAMPLE_SUBMISSIONS)


if __name__ == "__main__":
    from db import create_db_and_tables

    create_db_and_tables()
    seed_database()
