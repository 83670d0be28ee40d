"""
Audit Log model for tracking critical backoffice actions.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum

from atelier.database import Base, BigId
from atelier.utils.timeutils import utcnow


class AuditAction(enum.Enum):
    """Enumeration of auditable actions."""
    ORDER_CREATED = "ORDER_CREATED"
    ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"
    ORDER_MESSAGE_EDITED = "ORDER_MESSAGE_EDITED"
    ORDER_MESSAGE_DELETED = "ORDER_MESSAGE_DELETED"
    SITE_CONFIG_CHANGED = "SITE_CONFIG_CHANGED"


class AuditLog(Base):
    """Audit log for tracking user actions."""
    __tablename__ = 'audit_log'

    id = Column(Integer, primary_key=True)
    user_id = Column(BigId, ForeignKey('app_user.id'), nullable=True)
    action = Column(SQLEnum(AuditAction, name='audit_action'), nullable=False, index=True)
    resource_type = Column(String(50))  # e.g., 'order', 'site_config'
    resource_id = Column(Integer)
    details = Column(Text)  # JSON
    ip_address = Column(String(45))  # IPv4 or IPv6
    user_agent = Column(String(255))
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    user = relationship('AppUser')

    def __repr__(self):
        return f"<AuditLog {self.action.value} by user {self.user_id} at {self.created_at}>"
