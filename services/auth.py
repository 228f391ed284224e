"""Authentication service for identity-provider sessions."""
from typing import Optional
import os
import logging

from jose import JWTError, jwt
from pydantic import ValidationError
from sqlalchemy.orm import Session

from models.threads import utcnow
from models.users import User
from schemas.auth import SessionClaims

logger = logging.getLogger(__name__)


# Configuration
IDENTITY_PROVIDER_SECRET = os.getenv("IDENTITY_PROVIDER_SECRET", "your-secret-key-here-change-in-production")
IDENTITY_PROVIDER_ALGORITHM = os.getenv("IDENTITY_PROVIDER_ALGORITHM", "HS256")
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "session")


class AuthService:
    """
    Service class for authentication operations.

    Sign-in happens at the external identity provider, which hands the
    client a signed session token (as a cookie for the web client, as a
    bearer token for the mobile client). This service only verifies that
    token and mirrors the asserted profile into the users table.
    """

    @staticmethod
    def decode_session(token: str) -> Optional[SessionClaims]:
        """Decode and validate a session token. Returns None if invalid or expired."""
        try:
            payload = jwt.decode(token, IDENTITY_PROVIDER_SECRET, algorithms=[IDENTITY_PROVIDER_ALGORITHM])
            return SessionClaims(**payload)
        except (JWTError, ValidationError) as e:
            logger.info(f"Rejected session token: {e}")
            return None

    @staticmethod
    def get_user_by_id(db: Session, user_id: str) -> Optional[User]:
        """Get a user by ID."""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def upsert_user(db: Session, claims: SessionClaims) -> User:
        """Create the user on first sight, otherwise refresh the profile fields."""
        user = AuthService.get_user_by_id(db, claims.sub)

        if user is None:
            user = User(id=claims.sub)
            db.add(user)

        user.email = claims.email
        user.first_name = claims.first_name
        user.last_name = claims.last_name
        user.profile_image_url = claims.profile_image_url
        user.updated_at = utcnow()

        db.commit()
        db.refresh(user)

        return user
