from sqlalchemy import Boolean, Column, Index, Integer, Text, TIMESTAMP, ForeignKey
from sqlalchemy.orm import relationship
from .db import Base, utcnow

class Message(Base):
    __tablename__ = "messages"
    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(
        Integer, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    content = Column(Text, nullable=False)
    is_admin_reply = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    conversation = relationship("Conversation", back_populates="messages")

    __table_args__ = (
        # transcript reads are always (conversation, created_at, id) ordered
        Index("ix_messages_conversation_order", "conversation_id", "created_at", "id"),
    )
