"""Declarative base shared by core_entities and core_dynamic_data (Base.metadata is the Alembic target)."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
