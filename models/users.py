"""User model mirrored from the external identity provider."""
from sqlalchemy import Column, String, DateTime

from .threads import Base, utcnow


class User(Base):
    """
    SQLAlchemy model for users.

    Rows are owned by the identity provider: the id is the provider's
    subject claim and the profile fields are refreshed on every sign-in.
    """
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    email = Column(String, nullable=True, index=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    profile_image_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
