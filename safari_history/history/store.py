from typing import Any, List, Optional, Sequence, Set, Tuple
from pathlib import Path
import asyncio
import sqlite3
import weakref

from safari_history.history.errors import OpenError, QueryError
from safari_history.history.query import CompiledQuery
from safari_history.utils.logging import get_logger


logger = get_logger(__name__)

_REQUIRED_COLUMNS = {
	"history_items": {"id", "url"},
	"history_visits": {"history_item", "visit_time"},
}


def _table_columns(conn: sqlite3.Connection, table: str) -> Set[str]:
	return {r[1] for r in conn.execute(f"PRAGMA table_info({table})").fetchall()}


def _check_schema(conn: sqlite3.Connection) -> None:
	columns = {table: _table_columns(conn, table) for table in _REQUIRED_COLUMNS}
	for table, required in _REQUIRED_COLUMNS.items():
		if not columns[table]:
			raise OpenError(f"history store has no {table} table")
		missing = required - columns[table]
		if missing:
			raise OpenError(f"{table} is missing columns: {', '.join(sorted(missing))}")
	# Safari keeps title on visits; older layouts have it on items
	if not any("title" in cols for cols in columns.values()):
		raise OpenError("history store has no title column")


def open_db(path: str | Path, snapshot: bool = True) -> sqlite3.Connection:
	"""
	Open the history store read-only and verify its schema.

	With snapshot, the file is copied into an in-memory database so that
	a running browser holding the live file does not interfere with reads.
	"""
	db_path = Path(path)
	if not db_path.is_file():
		raise OpenError(f"history store not found: {db_path}")
	uri = f"{db_path.resolve().as_uri()}?mode=ro"
	conn: Optional[sqlite3.Connection] = None
	try:
		source = sqlite3.connect(uri, uri=True, check_same_thread=False)
		if snapshot:
			try:
				conn = sqlite3.connect(":memory:", check_same_thread=False)
				source.backup(conn)
			finally:
				source.close()
		else:
			conn = source
		_check_schema(conn)
	except OpenError:
		if conn is not None:
			conn.close()
		raise
	except sqlite3.Error as e:
		if conn is not None:
			conn.close()
		raise OpenError(f"cannot open history store {db_path}: {e}") from e
	logger.info({"event": "history_db_opened", "path": str(db_path), "snapshot": snapshot})
	return conn


def execute(conn: sqlite3.Connection, sql: str, params: Sequence[Any] = ()) -> List[Tuple[Any, ...]]:
	try:
		cur = conn.execute(sql, tuple(params))
		return [tuple(r) for r in cur.fetchall()]
	except sqlite3.Error as e:
		raise QueryError(f"{e.__class__.__name__}: {e}") from e


def close_db(conn: sqlite3.Connection) -> None:
	conn.close()
	logger.info({"event": "history_db_closed"})


class HistoryDatabase:
	"""
	One session's handle on the history store.

	The connection is opened lazily on the first fetch and reused after that.
	Engine calls run in a worker thread, one at a time.
	"""

	def __init__(self, path: str | Path, snapshot: bool = True) -> None:
		self.path = Path(path)
		self.snapshot = snapshot
		self._conn: Optional[sqlite3.Connection] = None
		self._finalizer: Optional[weakref.finalize] = None
		self._lock = asyncio.Lock()
		self._closed = False

	@property
	def is_open(self) -> bool:
		return self._conn is not None

	@property
	def closed(self) -> bool:
		return self._closed

	async def _ensure_open(self) -> sqlite3.Connection:
		if self._closed:
			raise OpenError("history store session is closed")
		if self._conn is None:
			conn = await asyncio.to_thread(open_db, self.path, self.snapshot)
			self._conn = conn
			# runs close_db at most once: explicit aclose() or interpreter exit
			self._finalizer = weakref.finalize(self, close_db, conn)
		return self._conn

	async def fetch(self, query: CompiledQuery) -> List[Tuple[Any, ...]]:
		async with self._lock:
			conn = await self._ensure_open()
			return await asyncio.to_thread(execute, conn, query.sql, query.params)

	async def aclose(self) -> None:
		async with self._lock:
			self._closed = True
			if self._finalizer is not None:
				self._finalizer()
			self._conn = None
