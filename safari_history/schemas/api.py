from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class SearchRequest(BaseModel):
	query: str = Field(default="", description="Raw search text as typed by the user")


class HistoryEntryItem(BaseModel):
	id: int
	url: str
	title: str
	display_title: str
	subtitle: Optional[str] = None
	timestamp: datetime


class DaySection(BaseModel):
	label: str
	day: date
	entries: List[HistoryEntryItem]


class SearchResponse(BaseModel):
	query: str
	entries: List[HistoryEntryItem] = []
	sections: List[DaySection] = []
	is_loading: bool
	error: Optional[str] = None
