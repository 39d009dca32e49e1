import os

TEST_DB_FILE = "test_course_enrollment.db"
TEST_DB_URL = f"sqlite:///./{TEST_DB_FILE}"

# the app's own engine (used by the startup hook) must point at the test db too
os.environ["DATABASE_URL"] = TEST_DB_URL

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from app.core.deps import get_db  # noqa: E402
from app.core.security import hash_password  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.main import app  # noqa: E402
from app.models.course import Course  # noqa: E402
from app.models.enrollment import Enrollment  # noqa: E402
from app.models.user import Role, User  # noqa: E402

PASSWORD = "password123"
# bcrypt is slow on purpose; hash once for every seeded user
PASSWORD_HASH = hash_password(PASSWORD)

engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create a fresh schema once for the whole test session."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    if os.path.exists(TEST_DB_FILE):
        os.remove(TEST_DB_FILE)


def _user(email: str, role: Role, first_name: str, active: bool = True) -> User:
    return User(
        first_name=first_name,
        last_name="Test",
        email=email,
        role=role,
        active=active,
        hashed_password=PASSWORD_HASH,
    )


@pytest.fixture(autouse=True)
def seed_data():
    """
    Seed a clean minimal dataset for each test and hand back the ids.

    - admin1 (admin), instructor1 / instructor2, student1 / student2
    - CS5004: instructor1, active, student1 enrolled
    - OLD100: instructor1, inactive, nobody enrolled
    - ART200: instructor2, active, nobody enrolled
    """
    db = TestingSessionLocal()
    try:
        # Clear tables (child -> parent)
        db.query(Enrollment).delete()
        db.query(Course).delete()
        db.query(User).delete()
        db.commit()

        admin = _user("admin1@example.com", Role.ADMIN, "Admin")
        instructor = _user("instructor1@example.com", Role.INSTRUCTOR, "Instructor")
        other_instructor = _user("instructor2@example.com", Role.INSTRUCTOR, "Other")
        student = _user("student1@example.com", Role.STUDENT, "Student")
        other_student = _user("student2@example.com", Role.STUDENT, "Second")
        db.add_all([admin, instructor, other_instructor, student, other_student])
        db.commit()

        cs = Course(title="Programming", code="CS5004", instructor_id=instructor.id, active=True)
        old = Course(title="Retired", code="OLD100", instructor_id=instructor.id, active=False)
        art = Course(title="Art", code="ART200", instructor_id=other_instructor.id, active=True)
        db.add_all([cs, old, art])
        db.commit()

        enrollment = Enrollment(course_id=cs.id, user_id=student.id)
        db.add(enrollment)
        db.commit()

        yield {
            "admin": admin.id,
            "instructor": instructor.id,
            "other_instructor": other_instructor.id,
            "student": student.id,
            "other_student": other_student.id,
            "cs": cs.id,
            "old": old.id,
            "art": art.id,
            "enrollment": enrollment.id,
        }
    finally:
        db.close()


@pytest.fixture()
def db():
    """A session on the test database for calling services directly."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def second_db():
    """Another session, standing in for a request running at the same time."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client():
    """Test client that uses the test DB session via dependency override."""
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
