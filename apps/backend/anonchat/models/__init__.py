from .db import Base, make_engine, make_session_factory, utcnow
from .conversation import Conversation
from .message import Message
from .admin_user import AdminUser

def create_all(engine):
    Base.metadata.create_all(bind=engine)
