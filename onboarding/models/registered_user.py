import uuid
from sqlalchemy import Column, String, DateTime, Uuid, UniqueConstraint
from sqlalchemy.sql import func
from onboarding.core.database import Base

class RegisteredUser(Base):
    __tablename__ = "registered_users"
    id = Column(Uuid(), primary_key=True, default=uuid.uuid4)
    identity = Column(String, nullable=False)
    identity_kind = Column(String, nullable=False)  # email|phone
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint('identity', name='uq_registered_identity'),
    )
