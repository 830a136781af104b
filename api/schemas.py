from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic import BaseModel, Field

from reading_tracker.progress import TOTAL_PAGES, TOTAL_PARTITIONS


class ReadingEventCreate(BaseModel):
    date: dt.date
    partition_number: int = Field(..., ge=1, le=TOTAL_PARTITIONS)
    pages_read: int = Field(..., ge=1, le=TOTAL_PAGES)
    start_page: Optional[int] = Field(None, ge=1, le=TOTAL_PAGES)
    end_page: Optional[int] = Field(None, ge=1, le=TOTAL_PAGES)


class ReadingGoalCreate(BaseModel):
    daily_target: int = Field(..., ge=1)
    weekly_target: int = Field(..., ge=1)
    total_pages: int = Field(TOTAL_PAGES, ge=1)
    is_active: bool = True


class ReadingGoalUpdate(BaseModel):
    daily_target: Optional[int] = Field(None, ge=1)
    weekly_target: Optional[int] = Field(None, ge=1)
    total_pages: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None
