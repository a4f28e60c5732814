from models.base_model import Base, BaseModel
from sqlalchemy import Column, String, Integer, Boolean, ForeignKey
from sqlalchemy.orm import relationship


class User(BaseModel, Base):
    __tablename__ = "users"
    username = Column(String(64), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    person_id = Column(Integer, ForeignKey("persons.id", ondelete="RESTRICT"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    person = relationship("Person", back_populates="user")
    role_users = relationship(
        "RoleUser",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    @property
    def first_name(self):
        return self.person.first_name if self.person else None

    @property
    def last_name(self):
        return self.person.last_name if self.person else None
