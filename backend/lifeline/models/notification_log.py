from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, JSON
from lifeline.database import Base


class NotificationLog(Base):
    __tablename__ = "notification_logs"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(String(36), index=True)
    contact_id = Column(String(36))
    kind = Column(String(20), nullable=False)  # PANIC | ACCESS
    channel = Column(String(20), nullable=False)  # SMS | EMAIL
    recipient = Column(String(200), nullable=False)
    subject = Column(String(300))
    body = Column(Text)
    status = Column(String(20), nullable=False)  # sent | failed
    simulated = Column(Boolean, nullable=False, default=False)
    error = Column(Text)
    details = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False)
