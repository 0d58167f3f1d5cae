from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from pydantic import BaseModel, Field

from safari_history.history.errors import MappingError


# Safari stores visit_time as seconds since 2001-01-01T00:00:00Z
VENDOR_EPOCH_OFFSET = 978307200


def from_vendor_timestamp(value: float) -> datetime:
	return datetime.fromtimestamp(value + VENDOR_EPOCH_OFFSET, tz=timezone.utc)


def to_vendor_timestamp(dt: datetime) -> float:
	if dt.tzinfo is None:
		dt = dt.replace(tzinfo=timezone.utc)
	return dt.timestamp() - VENDOR_EPOCH_OFFSET


class HistoryEntry(BaseModel):
	id: int
	url: str = Field(..., min_length=1)
	title: str = ""
	timestamp: datetime

	@property
	def display_title(self) -> str:
		return self.title or self.url

	@property
	def subtitle(self) -> Optional[str]:
		return self.url if self.title else None

	@classmethod
	def from_row(cls, row: Sequence[Any]) -> "HistoryEntry":
		"""
		Build an entry from a (id, url, title, visit_time) row.
		Raises MappingError when the row does not have that shape.
		"""
		try:
			row_id, url, title, visit_time = row
		except (TypeError, ValueError) as e:
			raise MappingError(f"unexpected history row shape: {row!r}") from e
		if isinstance(visit_time, bool) or not isinstance(visit_time, (int, float)):
			raise MappingError(f"visit_time is not numeric: {visit_time!r}")
		try:
			return cls(id=row_id, url=url, title=title or "", timestamp=from_vendor_timestamp(visit_time))
		except (ValueError, OverflowError, OSError) as e:
			raise MappingError(f"invalid history row {row!r}: {e}") from e
