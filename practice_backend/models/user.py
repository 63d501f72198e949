"""User model definitions."""

from sqlalchemy import Column, Integer, String
from practice_backend.database import Base


class User(Base):
    """Represents a logged-in provider."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    full_name = Column(String)
    role = Column(String)  # professional/patient
