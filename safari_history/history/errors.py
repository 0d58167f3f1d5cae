class HistorySearchError(Exception):
	"""Base class for failures surfaced through SearchState.error."""


class ConfigError(HistorySearchError):
	"""Required location/environment is missing; no session can start."""


class OpenError(HistorySearchError):
	"""History store is missing, unreadable, or not the expected schema."""


class QueryError(HistorySearchError):
	"""The engine rejected or failed to run a compiled query."""


class MappingError(HistorySearchError):
	"""A returned row does not have the (id, url, title, visit_time) shape."""
