"""Recurring review schedule for risks."""

import calendar
from datetime import datetime

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from riskledger.core.exceptions import ValidationError


def add_months(moment: datetime, months: int) -> datetime:
    """Add calendar months to a datetime.

    The day of month is clamped to the last day of the target month, so
    January 31 plus one month is the last day of February. Time of day and
    tzinfo are preserved.
    """
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


class ReviewCadence(BaseModel):
    """How often a risk must be reviewed, and when it is next due.

    Instances are immutable; ``mark_reviewed`` returns a new cadence.
    """

    model_config = ConfigDict(frozen=True)

    months: int = Field(gt=0)
    last_reviewed: AwareDatetime | None = None
    next_review_date: AwareDatetime | None = None

    @classmethod
    def create(
        cls,
        months: int,
        last_reviewed: datetime | None = None,
        next_review_date: datetime | None = None,
    ) -> "ReviewCadence":
        """Create a cadence, deriving the next review date when possible.

        Args:
            months: Review interval in months
            last_reviewed: When the risk was last reviewed
            next_review_date: Explicit next review date (wins over derivation)

        Raises:
            ValidationError: If months is not a positive integer
        """
        if isinstance(months, bool) or not isinstance(months, int) or months <= 0:
            raise ValidationError(
                "review_period_months", "Review period must be a positive number of months"
            )

        if last_reviewed is not None and next_review_date is None:
            next_review_date = add_months(last_reviewed, months)

        return cls(
            months=months,
            last_reviewed=last_reviewed,
            next_review_date=next_review_date,
        )

    def is_review_due(self, as_of: datetime) -> bool:
        """Check whether a review is due at the given instant."""
        if self.next_review_date is None:
            return False
        return as_of >= self.next_review_date

    def mark_reviewed(self, review_date: datetime) -> "ReviewCadence":
        """Return a new cadence reviewed at ``review_date``."""
        return ReviewCadence(
            months=self.months,
            last_reviewed=review_date,
            next_review_date=add_months(review_date, self.months),
        )
