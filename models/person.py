from sqlalchemy import Column, String, Boolean
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base


class Person(BaseModel, Base):
    __tablename__ = "persons"

    first_name = Column(String(128), nullable=False)
    last_name = Column(String(128), nullable=False)
    document_number = Column(String(32), nullable=False, unique=True, index=True)
    document_type = Column(String(8), nullable=True, default="CC")
    phone = Column(String(32), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    user = relationship("User", back_populates="person", uselist=False)
