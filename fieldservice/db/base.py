"""
Declarative base for all models
"""
import uuid

from sqlalchemy.orm import declarative_base

Base = declarative_base()


def new_id() -> str:
    """Primary key factory: random UUID as a string (document-style ids)."""
    return str(uuid.uuid4())
