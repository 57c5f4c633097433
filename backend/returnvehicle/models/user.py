"""
Local user record mirroring an identity-provider account.
"""

from sqlalchemy import Column, Integer, String, CheckConstraint

from returnvehicle.db.base import Base, TimestampMixin
from returnvehicle.models.status import UserRole, UserStatus


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    uid = Column(String(128), unique=True, index=True, nullable=False)
    email = Column(String(255), index=True, nullable=False, default="")
    display_name = Column(String(255), nullable=False, default="")
    photo_url = Column(String(1024), nullable=False, default="")
    role = Column(String(20), nullable=False, default=UserRole.USER.value, index=True)
    status = Column(String(20), nullable=False, default=UserStatus.APPROVED.value, index=True)

    __table_args__ = (
        CheckConstraint("role IN ('user', 'driver', 'admin')", name="check_user_role"),
        CheckConstraint("status IN ('approved', 'blocked')", name="check_user_status"),
    )

    def __repr__(self) -> str:
        return f"<User(uid={self.uid}, role={self.role})>"
