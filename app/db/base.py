# Import all models here so Base.metadata sees every table
# (used by init_db, alembic and the test suite).
from app.db.base_class import Base  # noqa: F401
from app.models.course import Course  # noqa: F401
from app.models.enrollment import Enrollment  # noqa: F401
from app.models.user import User  # noqa: F401
