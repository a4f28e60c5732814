from sqlalchemy import Column, String, Integer, Boolean, DateTime, Text, ForeignKey

from models.base_model import BaseModel, Base, utcnow


class AccessLog(BaseModel, Base):
    __tablename__ = "access_logs"

    # nullable: failed logins for unknown usernames have no user
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String(128), nullable=False)
    timestamp = Column(DateTime, nullable=False, default=utcnow)
    status = Column(Boolean, nullable=False)
    details = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<AccessLog action={self.action} user_id={self.user_id} status={self.status}>"
