"""
Create base tables from SQLAlchemy models.
Run this before `alembic upgrade head` on a fresh database, or instead of it
for a quick local setup.
"""
from app.config import settings
from app.database import Database

Database(settings.DATABASE_URL).create_all()
print("Base tables created (or already exist).")
