"""Email log model - one row per notification attempt."""
from sqlalchemy import Column, String, Text, DateTime
from atelier.database import Base, BigId
from atelier.utils.timeutils import utcnow


class EmailLog(Base):
    """Outcome of a dispatched notification: sent, skipped (mail disabled) or failed."""

    __tablename__ = 'email_log'

    id = Column(BigId, primary_key=True, autoincrement=True)
    recipient = Column(String(500), nullable=False)
    subject = Column(String(255), nullable=False)
    template = Column(String(60), nullable=False, index=True)
    status = Column(String(20), nullable=False)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<EmailLog(template='{self.template}', to='{self.recipient}', status='{self.status}')>"
