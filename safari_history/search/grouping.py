from datetime import date, datetime, tzinfo
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel

from safari_history.history.models import HistoryEntry


TODAY_LABEL = "today"


class DayGroup(BaseModel):
	label: str
	day: date
	entries: List[HistoryEntry]


def _local(dt: datetime, tz: Optional[tzinfo]) -> datetime:
	return dt.astimezone(tz) if tz is not None else dt.astimezone()


def group_by_day(entries: Iterable[HistoryEntry], now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> List[DayGroup]:
	"""
	Bucket entries by calendar day in tz (local time when omitted).

	Order inside a bucket is the input order. Buckets are ordered by their
	most recent entry, newest day first; the current day is labeled "today".
	"""
	buckets: Dict[date, List[HistoryEntry]] = {}
	for entry in entries:
		buckets.setdefault(_local(entry.timestamp, tz).date(), []).append(entry)

	today = _local(now or datetime.now().astimezone(), tz).date()
	ordered = sorted(buckets.items(), key=lambda kv: max(e.timestamp for e in kv[1]), reverse=True)
	return [
		DayGroup(label=TODAY_LABEL if day == today else day.isoformat(), day=day, entries=items)
		for day, items in ordered
	]
