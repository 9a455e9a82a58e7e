"""
Credential database model.

One row per (account, provider). Rows are created by the OAuth
callback and updated in place on every refresh.
"""

from datetime import datetime

from sqlalchemy import Column, String, DateTime, Integer, Text, UniqueConstraint

from coachsync.models.base import Base


class Credential(Base):
    """
    OAuth token storage.

    Stores access and refresh tokens for an upstream API.
    Tokens should be encrypted at rest in production.
    """

    __tablename__ = "credentials"
    __table_args__ = (
        UniqueConstraint("account_id", "provider", name="uq_credentials_account_provider"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(String(64), nullable=False, index=True)
    provider = Column(String(32), nullable=False, default="strava")

    # Upstream athlete identifier (Strava athlete id)
    external_athlete_id = Column(String(32), nullable=True)

    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    expires_at = Column(Integer, nullable=False)  # Unix timestamp
    scope = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Credential account_id={self.account_id} provider={self.provider}>"
