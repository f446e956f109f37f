"""
Activity timer models.

Timers are attached to activities (or folders of activities) and answer one
question for the engine: is the activity due on this date? An activity only
runs when every timer on it and on all of its ancestors says yes.
"""

from typing import List, Optional
from uuid import uuid4
from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import date as date_type


class MonthlyTimer(BaseModel):
    """Due in the listed calendar months (1=January, 12=December)."""
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = Field(default="Monthly timer")
    months: List[int] = Field(min_length=1, description="Months the activity is due")

    @field_validator('months')
    @classmethod
    def validate_months(cls, v):
        if any(m < 1 or m > 12 for m in v):
            raise ValueError("Months must be between 1 and 12")
        return sorted(set(v))

    def activity_due(self, date: date_type) -> bool:
        return date.month in self.months


class IntervalTimer(BaseModel):
    """
    Due every 'interval_months' months counted from 'start'.
    Optionally limited to a closed date range.
    """
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = Field(default="Interval timer")
    start: date_type = Field(description="First due month")
    interval_months: int = Field(default=1, ge=1)
    end: Optional[date_type] = Field(default=None, description="Last date the timer can be due")

    @model_validator(mode='after')
    def validate_dates(self):
        if self.end is not None and self.end < self.start:
            raise ValueError("Timer end cannot be before start")
        return self

    def activity_due(self, date: date_type) -> bool:
        if date < self.start.replace(day=1):
            return False
        if self.end is not None and date > self.end:
            return False
        elapsed = (date.year - self.start.year) * 12 + (date.month - self.start.month)
        return elapsed % self.interval_months == 0
