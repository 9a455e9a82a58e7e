"""
SQLAlchemy declarative base.

All feature models inherit from Base so a single metadata
object covers the whole schema (used by init_db and Alembic).
"""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
