"""AppUser model - caller identity projection used by the storefront and backoffice."""
import enum
from sqlalchemy import Column, String, Boolean, DateTime
from atelier.database import Base, BigId
from atelier.utils.timeutils import utcnow


class UserRole(str, enum.Enum):
    """Roles yielded by the identity provider."""
    CUSTOMER = 'CUSTOMER'
    STAFF = 'STAFF'
    ADMIN = 'ADMIN'


STAFF_ROLES = (UserRole.STAFF.value, UserRole.ADMIN.value)


class AppUser(Base):
    """Platform user. Authentication itself happens outside this application."""

    __tablename__ = 'app_user'

    id = Column(BigId, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(200), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.CUSTOMER.value)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    @property
    def is_staff(self):
        return self.role in STAFF_ROLES

    def __repr__(self):
        return f"<AppUser(id={self.id}, email='{self.email}', role='{self.role}')>"
