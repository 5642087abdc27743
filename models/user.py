from enum import Enum

from sqlalchemy import Column, String
from sqlalchemy.orm import relationship
from sqlalchemy.types import Enum as SAEnum

from models.base_model import Base, BaseModel


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class User(BaseModel, Base):
    __tablename__ = "users"

    username = Column(String(64), nullable=False, unique=True, index=True)  # case-sensitive
    email = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(
        SAEnum(UserRole, name="user_role", native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserRole.USER,
    )

    refresh_token = relationship(
        "RefreshToken",
        back_populates="user",
        uselist=False,
        passive_deletes=True,
    )
