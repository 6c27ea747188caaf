# app/models/authorized_user.py
"""
Authorized users table: people enrolled from the face-recognition tab.
Soft-deactivated via is_active; never hard-deleted.
"""

from sqlalchemy import Column, Integer, String, DateTime, Boolean
from app.database import Base


class AuthorizedUser(Base):
    __tablename__ = "authorized_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, index=True)
    image_url = Column(String(500))
    created_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    def __repr__(self):
        return f"<AuthorizedUser {self.id} {self.name} active={self.is_active}>"
