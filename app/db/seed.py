"""
Recreate the schema and load demo data.

    python -m app.db.seed

Wipes every table first; never point this at a database you care about.
"""

import logging
from datetime import date, timedelta

from app.core.security import hash_password
from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.models.course import Course
from app.models.enrollment import Enrollment
from app.models.user import Role, User

logger = logging.getLogger(__name__)

DEMO_USERS = [
    ("Admin", "User", "admin@example.com", "admin123", Role.ADMIN),
    ("Instructor", "User", "instructor@example.com", "instructor123", Role.INSTRUCTOR),
    ("Student", "User", "student@example.com", "student123", Role.STUDENT),
]

DEMO_COURSES = [
    (
        "CS101",
        "Introduction to Programming",
        "A beginner-friendly course covering the fundamentals of programming logic and syntax.",
    ),
    (
        "WEB200",
        "Web Development Basics",
        "Learn HTML, CSS, and JavaScript to build interactive websites from scratch.",
    ),
    (
        "DB300",
        "Database Design",
        "Introduction to database concepts, SQL, and relational database design principles.",
    ),
]


def seed() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        users = {}
        for first_name, last_name, email, password, role in DEMO_USERS:
            users[role] = User(
                first_name=first_name,
                last_name=last_name,
                email=email,
                hashed_password=hash_password(password),
                role=role,
                active=True,
            )
        db.add_all(users.values())
        db.commit()
        logger.info("created %s demo users", len(users))

        start = date.today()
        courses = [
            Course(
                code=code,
                title=title,
                description=description,
                instructor_id=users[Role.INSTRUCTOR].id,
                start_date=start,
                end_date=start + timedelta(days=90),
                active=True,
            )
            for code, title, description in DEMO_COURSES
        ]
        db.add_all(courses)
        db.commit()
        logger.info("created %s demo courses", len(courses))

        db.add(Enrollment(user_id=users[Role.STUDENT].id, course_id=courses[0].id))
        db.commit()
        logger.info("enrolled demo student in %s", courses[0].code)
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    seed()
