"""
Refresh tokens for session rotation.
Only the SHA256 hash of a token is stored, together with the principal it
was issued to and its expiry/revocation timestamps.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Index

from app.db.base_class import Base


class RefreshToken(Base):
    """
    A refresh token issued to an admin (``users.id``) or a manager
    (``manager_role.id``). ``role`` tells which table ``subject_id`` points to,
    so there is no foreign key.
    """
    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, index=True)
    token_hash = Column(String(64), unique=True, nullable=False, index=True)

    subject_id = Column(Integer, nullable=False)
    role = Column(String(20), nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime, nullable=True)

    device_info = Column(String(255), nullable=True)
    ip_address = Column(String(45), nullable=True)  # IPv6 max length

    __table_args__ = (
        Index('ix_refresh_tokens_subject', 'role', 'subject_id', 'expires_at'),
        Index('ix_refresh_tokens_cleanup', 'expires_at', 'revoked_at'),
    )

    def is_valid(self) -> bool:
        """Not expired and not revoked."""
        return self.expires_at > datetime.utcnow() and self.revoked_at is None

    def revoke(self) -> None:
        self.revoked_at = datetime.utcnow()
