import uuid

from sqlalchemy import CheckConstraint, Column, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from capital.core.base import Base


class BudgetCategory(Base):
    __tablename__ = "budget_categories"

    budget_category_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    user_id = Column(
        String(36),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    type = Column(String(10), nullable=False)
    name = Column(String(30), nullable=False)
    category_order = Column(Integer, nullable=False, default=0)

    __table_args__ = (CheckConstraint("type IN ('Income', 'Expenses')", name="ck_budget_categories_type"),)

    user = relationship("User", back_populates="budget_categories")
    budgets = relationship(
        "Budget",
        back_populates="category",
        cascade="all, delete-orphan",
    )


class Budget(Base):
    __tablename__ = "budgets"

    # One goal per category per month
    budget_category_id = Column(
        String(36),
        ForeignKey("budget_categories.budget_category_id", ondelete="CASCADE"),
        primary_key=True,
    )
    year = Column(Integer, primary_key=True)
    month = Column(Integer, primary_key=True)

    goal = Column(Float, nullable=False)

    category = relationship("BudgetCategory", back_populates="budgets")
