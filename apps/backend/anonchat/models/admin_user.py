from sqlalchemy import Column, Integer, String, Text, TIMESTAMP
from .db import Base, utcnow

class AdminUser(Base):
    __tablename__ = "admin_users"
    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)  # bcrypt
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
