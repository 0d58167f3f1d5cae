from typing import Any, Callable, List, Optional, Protocol, Set, Tuple
import asyncio

from pydantic import BaseModel, ConfigDict, Field

from safari_history.config.settings import Settings, get_settings
from safari_history.history.errors import HistorySearchError
from safari_history.history.models import HistoryEntry
from safari_history.history.query import CompiledQuery, compile_query
from safari_history.history.store import HistoryDatabase
from safari_history.utils.logging import get_logger


logger = get_logger(__name__)


class SearchState(BaseModel):
	model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

	query: str = ""
	entries: List[HistoryEntry] = Field(default_factory=list)
	error: Optional[Exception] = None
	is_loading: bool = True

	@property
	def error_message(self) -> Optional[str]:
		return str(self.error) if self.error is not None else None


class RowSource(Protocol):
	async def fetch(self, query: CompiledQuery) -> List[Tuple[Any, ...]]: ...

	async def aclose(self) -> None: ...


Listener = Callable[[SearchState], None]


class SearchController:
	"""
	Runs history searches for one session and publishes a SearchState.

	Every call to on_query_changed starts a new generation. Results are
	applied only if their generation is still current when they arrive, so
	a slow older search can never overwrite the outcome of a newer one.
	"""

	def __init__(
		self,
		database: RowSource,
		debounce: Optional[float] = None,
		on_error: Optional[Callable[[str], None]] = None,
	) -> None:
		self._database = database
		self._debounce = get_settings().SEARCH_DEBOUNCE_SECONDS if debounce is None else debounce
		self._on_error = on_error
		self._generation = 0
		self._listeners: List[Listener] = []
		self._tasks: Set[asyncio.Task] = set()
		self._closed = False
		self.state = SearchState()

	@property
	def generation(self) -> int:
		return self._generation

	def subscribe(self, listener: Listener) -> Callable[[], None]:
		self._listeners.append(listener)

		def _unsubscribe() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return _unsubscribe

	def _publish(self, **changes: Any) -> None:
		self.state = self.state.model_copy(update=changes)
		for listener in list(self._listeners):
			try:
				listener(self.state)
			except Exception:
				logger.exception("search_listener_failed")

	def on_query_changed(self, new_query: str) -> asyncio.Task:
		"""
		Start searching for new_query and supersede any search in flight.
		Must be called from the running event loop.
		"""
		if self._closed:
			raise RuntimeError("search session is closed")
		self._generation += 1
		generation = self._generation
		self._publish(query=new_query, is_loading=True, error=None)
		task = asyncio.get_running_loop().create_task(self._run(generation, new_query))
		self._tasks.add(task)
		task.add_done_callback(self._tasks.discard)
		return task

	async def search(self, query: str) -> SearchState:
		"""
		Start a search for query and wait for it to finish.

		Returns the controller's current state, not a result tied to query:
		if a newer search started meanwhile, the state carries the newer
		query and may still be loading.
		"""
		await self.on_query_changed(query)
		return self.state

	def _is_current(self, generation: int) -> bool:
		return generation == self._generation and not self._closed

	async def _run(self, generation: int, query: str) -> None:
		if self._debounce > 0:
			await asyncio.sleep(self._debounce)
			if not self._is_current(generation):
				logger.debug({"event": "search_dropped", "generation": generation})
				return
		try:
			compiled = compile_query(query)
			rows = await self._database.fetch(compiled)
			entries = [HistoryEntry.from_row(r) for r in rows]
		except Exception as e:
			if not isinstance(e, HistorySearchError):
				logger.exception("search_failed_unexpectedly")
			self._settle_error(generation, e)
			return
		self._settle(generation, entries)

	def _settle(self, generation: int, entries: List[HistoryEntry]) -> None:
		if not self._is_current(generation):
			logger.debug({"event": "search_superseded", "generation": generation})
			return
		self._publish(entries=entries, is_loading=False)
		logger.info({"event": "search_settled", "generation": generation, "count": len(entries)})

	def _settle_error(self, generation: int, error: Exception) -> None:
		if not self._is_current(generation):
			logger.debug({"event": "search_superseded", "generation": generation, "error": str(error)})
			return
		self._publish(error=error, is_loading=False)
		logger.warning({"event": "search_failed", "generation": generation, "error": f"{error.__class__.__name__}: {error}"})
		if self._on_error is not None:
			try:
				self._on_error(str(error))
			except Exception:
				logger.exception("search_error_notifier_failed")

	async def aclose(self) -> None:
		"""
		End the session: outstanding searches are discarded, then the
		database handle is released.
		"""
		if self._closed:
			return
		self._closed = True
		self._generation += 1
		try:
			if self._tasks:
				await asyncio.gather(*list(self._tasks), return_exceptions=True)
		finally:
			await self._database.aclose()

	async def __aenter__(self) -> "SearchController":
		return self

	async def __aexit__(self, exc_type, exc, tb) -> None:
		await self.aclose()


def open_session(settings: Optional[Settings] = None, **kwargs: Any) -> SearchController:
	"""
	Build a controller for the configured History.db.
	Raises ConfigError when the store location cannot be resolved.
	"""
	settings = settings or get_settings()
	path = settings.resolve_history_db_path()
	database = HistoryDatabase(path, snapshot=settings.HISTORY_DB_SNAPSHOT)
	kwargs.setdefault("debounce", settings.SEARCH_DEBOUNCE_SECONDS)
	logger.info({"event": "search_session_opened", "path": str(path)})
	return SearchController(database, **kwargs)
