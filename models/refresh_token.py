"""
RefreshToken model: opaque refresh tokens bound to the access token (jti) they
were issued with.
Fields:
- token (unique random value handed to the client)
- user_id - FK to users.id
- jwt_id (jti of the access token issued alongside)
- is_used, is_revoked
- added_date, expiry_date (naive UTC)
"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey
from models.base_model import BaseModel, Base, utcnow


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    token = Column(String(256), nullable=False, unique=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    jwt_id = Column(String(128), nullable=False)
    is_used = Column(Boolean, default=False, nullable=False)
    is_revoked = Column(Boolean, default=False, nullable=False)
    added_date = Column(DateTime, nullable=False, default=utcnow)
    expiry_date = Column(DateTime, nullable=False)

    @property
    def is_active(self) -> bool:
        return not self.is_used and not self.is_revoked and utcnow() <= self.expiry_date

    def __repr__(self):
        return f"<RefreshToken id={self.id} user_id={self.user_id} jwt_id={self.jwt_id}>"
