"""
SalesDesk - Database Seed Script

Creates the initial admin user and, optionally, demo users for the
other roles.

Usage:
    python -m scripts.seed_users
"""

from sqlmodel import select

from salesdesk.auth.database import get_engine, get_session_factory, init_db
from salesdesk.auth.models import Role, User
from salesdesk.auth.password import set_password
from salesdesk.config import settings


ADMIN = ("admin@example.com", "Administrator", "password123", Role.ADMIN, None)

DEMO_USERS = [
    ("manager@example.com", "Demo Manager", "password123", Role.MANAGER, "Louis Safety"),
    ("sales@example.com", "Demo Salesperson", "password123", Role.SALESPERSON, "Louis Safety"),
    ("marine@example.com", "Marine Salesperson", "password123", Role.SALESPERSON, "Al Safwan Marine"),
]


def seed(users) -> None:
    engine = get_engine(settings.DATABASE_URL)
    init_db(engine)
    session_factory = get_session_factory(engine)

    with session_factory() as db:
        for email, name, password, role, company in users:
            existing = db.exec(select(User).where(User.email == email)).first()
            if existing:
                print(f"User {email} already exists.")
                continue

            user = User(email=email, name=name, role=role, company=company, enabled=True)
            set_password(user, password)
            db.add(user)
            print(f"Created user: {email} ({role.value}) password: {password}")

        db.commit()

    engine.dispose()


if __name__ == "__main__":
    print("=" * 50)
    print("SalesDesk - User Seed Script")
    print("=" * 50)

    seed([ADMIN])

    print()
    response = input("Create demo users for all roles? (y/n): ")
    if response.lower() == "y":
        seed(DEMO_USERS)

    print()
    print("Done!")
