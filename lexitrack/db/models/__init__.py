# SQLAlchemy models
from .base import Base
from .review import ReviewableItemRow, ReviewEventRow, ReviewStateRow

__all__ = [
    "Base",
    "ReviewableItemRow",
    "ReviewStateRow",
    "ReviewEventRow",
]
