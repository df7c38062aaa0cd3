from __future__ import annotations

import datetime as dt
from typing import List, Literal, Optional

from pydantic import BaseModel


class FilterStateModel(BaseModel):
    type: Optional[Literal["hail", "tornado", "wind"]] = None
    state: Optional[str] = None
    county: Optional[str] = None
    severity: Optional[Literal["severe", "non-severe"]] = None


class DashboardRequestModel(FilterStateModel):
    date_from: Optional[dt.date] = None
    date_to: Optional[dt.date] = None


class QueryRunModel(BaseModel):
    query: Optional[str] = None


class MetaListResponse(BaseModel):
    values: List[str]
