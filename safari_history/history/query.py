from typing import List, NamedTuple


RESULT_LIMIT = 40

_QUERY_PREFIX = """select
  history_items.id, url, title, visit_time
from history_items
inner join history_visits
  on history_visits.history_item = history_items.id"""

_QUERY_SUFFIX = f"""group by url
order by visit_time desc
limit {RESULT_LIMIT}"""

_TERM_PREDICATE = "((title like ?) or (url like ?))"

PLAIN_QUERY = f"{_QUERY_PREFIX} {_QUERY_SUFFIX}"


class CompiledQuery(NamedTuple):
	sql: str
	params: List[str]


def split_terms(search: str) -> List[str]:
	return [t.strip() for t in (search or "").split() if t.strip()]


def compile_query(search: str) -> CompiledQuery:
	"""
	Compile raw search text into one parameterized SELECT.

	Every whitespace-separated term must match title or url as a
	case-insensitive substring. Terms are bound, never spliced into the SQL;
	'%' and '_' inside a term still act as LIKE wildcards.
	"""
	terms = split_terms(search)
	if not terms:
		return CompiledQuery(PLAIN_QUERY, [])

	parts: List[str] = []
	params: List[str] = []
	for term in terms:
		parts.append(_TERM_PREDICATE)
		params.extend([f"%{term}%", f"%{term}%"])
	sql = f"{_QUERY_PREFIX} where {' and '.join(parts)} {_QUERY_SUFFIX}"
	return CompiledQuery(sql, params)
