from sqlalchemy import Column, String, Integer, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base


class Role(BaseModel, Base):
    __tablename__ = "roles"

    role_name = Column(String(64), nullable=False, unique=True)
    description = Column(String(255), nullable=True)

    role_users = relationship("RoleUser", back_populates="role", passive_deletes=True)


class RoleUser(BaseModel, Base):
    """Many-to-many user <-> role assignment; only active rows grant the role."""
    __tablename__ = "role_users"

    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    role = relationship("Role", back_populates="role_users")
    user = relationship("User", back_populates="role_users")

    __table_args__ = (
        UniqueConstraint("role_id", "user_id", name="uq_role_users_role_user"),
    )
