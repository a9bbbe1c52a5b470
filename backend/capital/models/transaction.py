import uuid

from sqlalchemy import Column, DateTime, Float, ForeignKey, String
from sqlalchemy.orm import relationship

from capital.core.base import Base


class Transaction(Base):
    __tablename__ = "transactions"

    transaction_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    user_id = Column(
        String(36),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Both links are optional and survive the deletion of their target as NULL
    account_id = Column(String(36), ForeignKey("accounts.account_id", ondelete="SET NULL"), nullable=True)
    budget_category_id = Column(
        String(36),
        ForeignKey("budget_categories.budget_category_id", ondelete="SET NULL"),
        nullable=True,
    )

    # Positive for income, negative for expenses
    amount = Column(Float, nullable=False)
    description = Column(String(255), nullable=False, default="")
    date = Column(DateTime(timezone=True), nullable=False, index=True)

    user = relationship("User", back_populates="transactions")
