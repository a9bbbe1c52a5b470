# Import models so they register with SQLAlchemy metadata.
from capital.models.account import Account  # noqa: F401
from capital.models.budget import Budget, BudgetCategory  # noqa: F401
from capital.models.economy import EconomyRecord  # noqa: F401
from capital.models.transaction import Transaction  # noqa: F401
from capital.models.user import User  # noqa: F401
