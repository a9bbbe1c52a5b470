import uuid

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from capital.core.base import Base


class Account(Base):
    __tablename__ = "accounts"

    account_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    user_id = Column(
        String(36),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = Column(String(30), nullable=False)
    # Examples: Checking, Savings, Credit Card, Investment, Loan, Property
    type = Column(String(20), nullable=False)
    balance = Column(Float, nullable=False, default=0.0)
    image = Column(String(500), nullable=True)
    account_order = Column(Integer, nullable=False, default=0)

    last_updated = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="accounts")
