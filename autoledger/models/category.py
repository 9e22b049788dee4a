"""
Category Taxonomy

The ledger uses a CLOSED set of categories split into two disjoint
partitions: one for expenses, one for income. A transaction's category
must always belong to the partition that matches its type.

DESIGN DECISION: Reconciliation is an exact set-membership lookup.
We do not fuzzy-match AI labels. Anything unknown falls back to the
"other" member of the matching partition.
"""

from enum import Enum
from typing import Optional, Union


class TransactionType(str, Enum):
    """Direction of money flow."""
    EXPENSE = "expense"
    INCOME = "income"


class Category(str, Enum):
    """
    All ledger categories.

    Values are the labels shown to the user and written to storage,
    so they must never change once data exists.
    """
    # Expense categories
    FOOD = "餐饮美食"
    SHOPPING = "购物消费"
    TRANSPORT = "交通出行"
    BILLS = "生活缴费"
    ENTERTAINMENT = "休闲娱乐"
    HEALTH = "医疗健康"
    EDUCATION = "学习教育"
    EXPENSE_OTHER = "其他支出"

    # Income categories
    SALARY = "工资薪金"
    INVESTMENT = "投资理财"
    BONUS = "奖金补贴"
    INCOME_OTHER = "其他入账"


EXPENSE_CATEGORIES: tuple[Category, ...] = (
    Category.FOOD,
    Category.SHOPPING,
    Category.TRANSPORT,
    Category.BILLS,
    Category.ENTERTAINMENT,
    Category.HEALTH,
    Category.EDUCATION,
    Category.EXPENSE_OTHER,
)

INCOME_CATEGORIES: tuple[Category, ...] = (
    Category.SALARY,
    Category.INVESTMENT,
    Category.BONUS,
    Category.INCOME_OTHER,
)

_PARTITIONS: dict[TransactionType, tuple[Category, ...]] = {
    TransactionType.EXPENSE: EXPENSE_CATEGORIES,
    TransactionType.INCOME: INCOME_CATEGORIES,
}

_DEFAULTS: dict[TransactionType, Category] = {
    TransactionType.EXPENSE: Category.EXPENSE_OTHER,
    TransactionType.INCOME: Category.INCOME_OTHER,
}


def categories_for(transaction_type: TransactionType) -> tuple[Category, ...]:
    """Return the ordered category list for a transaction type."""
    return _PARTITIONS[TransactionType(transaction_type)]


def default_category(transaction_type: TransactionType) -> Category:
    """Fallback category used whenever reconciliation fails."""
    return _DEFAULTS[TransactionType(transaction_type)]


def is_valid_for(category: Union[Category, str], transaction_type: TransactionType) -> bool:
    """Check that a category belongs to the partition for this type."""
    try:
        category = Category(category)
    except ValueError:
        return False
    return category in categories_for(transaction_type)


def reconcile_category(
    label: Optional[str],
    transaction_type: TransactionType,
) -> tuple[Category, bool]:
    """
    Map a free-text label onto the closed taxonomy.

    Returns:
        (category, fallback_applied)

    Only an exact match against the partition for `transaction_type`
    is accepted. A label from the other partition counts as a miss.
    """
    candidate = (label or "").strip()
    for category in categories_for(transaction_type):
        if category.value == candidate:
            return category, False
    return default_category(transaction_type), True
