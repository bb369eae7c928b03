"""
Import all models here to ensure they are registered with SQLAlchemy.
"""
# Import Base
from app.models.base import Base

# Identity and profiles
from app.models.profile import AuthUser, Profile

# Academic catalog
from app.models.subject import Subject
from app.models.group import Group
from app.models.schedule import Schedule

# Import pipeline models
from app.models.import_job import BulkImport, ImportRowError

# This allows alembic to auto-discover all models when creating migrations
