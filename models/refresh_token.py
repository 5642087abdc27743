"""
RefreshToken model: the single active refresh token of a user.
Fields:
- user_id (String(36)) - FK to users.id, unique: one row per user
- token - the signed refresh token, unique
- expires_at - when the store stops honouring the token
"""
from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    token = Column(String(512), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User", back_populates="refresh_token")

    def __repr__(self):
        return f"<RefreshToken user={self.user_id}>"
