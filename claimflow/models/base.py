"""
SQLAlchemy Base Model
Source: https://docs.sqlalchemy.org/en/20/orm/declarative_styles.html
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass
