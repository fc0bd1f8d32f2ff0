from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from helpdesk.database import Base
from helpdesk.models.common import utcnow

class IpBan(Base):
    __tablename__ = "ip_bans"

    ip = Column(String(45), primary_key=True)
    failed_attempts = Column(Integer, nullable=False, default=0)
    banned_until = Column(DateTime(timezone=True), nullable=True, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
