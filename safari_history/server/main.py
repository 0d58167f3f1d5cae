from contextlib import asynccontextmanager
from typing import List, Optional
import asyncio

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.status import HTTP_503_SERVICE_UNAVAILABLE, HTTP_504_GATEWAY_TIMEOUT

from safari_history.config.settings import get_settings
from safari_history.history.errors import ConfigError
from safari_history.history.models import HistoryEntry
from safari_history.schemas.api import DaySection, HistoryEntryItem, SearchRequest, SearchResponse
from safari_history.search.controller import SearchController, SearchState, open_session
from safari_history.search.grouping import group_by_day
from safari_history.utils.logging import get_logger


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	app.state.controller = None
	app.state.config_error = None
	try:
		app.state.controller = open_session(get_settings())
	except ConfigError as e:
		logger.error({"event": "search_session_unavailable", "error": str(e)})
		app.state.config_error = str(e)
	try:
		yield
	finally:
		if app.state.controller is not None:
			await app.state.controller.aclose()


app = FastAPI(title="Safari History Search", version="0.1.0", lifespan=lifespan)

_cors = get_settings().CORS_ORIGINS
origins = ["*"] if _cors.strip() == "*" else [o.strip() for o in _cors.split(",") if o.strip()]
app.add_middleware(CORSMiddleware, allow_origins=origins, allow_credentials=True, allow_methods=["*"], allow_headers=["*"])

router = APIRouter(prefix="/api/v1")


def _entry_item(entry: HistoryEntry) -> HistoryEntryItem:
	return HistoryEntryItem(
		id=entry.id,
		url=entry.url,
		title=entry.title,
		display_title=entry.display_title,
		subtitle=entry.subtitle,
		timestamp=entry.timestamp,
	)


def _to_response(state: SearchState) -> SearchResponse:
	sections: List[DaySection] = [
		DaySection(label=g.label, day=g.day, entries=[_entry_item(e) for e in g.entries])
		for g in group_by_day(state.entries)
	]
	return SearchResponse(
		query=state.query,
		entries=[_entry_item(e) for e in state.entries],
		sections=sections,
		is_loading=state.is_loading,
		error=state.error_message,
	)


def _controller(request: Request) -> Optional[SearchController]:
	return request.app.state.controller


def _unavailable(request: Request) -> JSONResponse:
	detail = request.app.state.config_error or "search session unavailable"
	return JSONResponse({"detail": detail}, status_code=HTTP_503_SERVICE_UNAVAILABLE)


@router.get("/health")
async def health():
	return {"status": "ok"}


@router.post("/history/search", response_model=SearchResponse)
async def search_history(req: SearchRequest, request: Request):
	"""
	Run a search and return the session state once it settles. When a newer
	request overlaps, the older request gets the newer search's state, so
	clients should compare the returned query with the one they sent.
	"""
	controller = _controller(request)
	if controller is None:
		return _unavailable(request)
	task = controller.on_query_changed(req.query)
	timeout = get_settings().SEARCH_TIMEOUT_SECONDS
	try:
		# shielded: a timed-out request must not cancel the search itself
		await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
	except asyncio.TimeoutError:
		logger.warning({"event": "search_timeout", "timeout": timeout})
		return JSONResponse({"detail": f"search timed out after {timeout}s"}, status_code=HTTP_504_GATEWAY_TIMEOUT)
	return _to_response(controller.state)


@router.get("/history/state", response_model=SearchResponse)
async def search_state(request: Request):
	controller = _controller(request)
	if controller is None:
		return _unavailable(request)
	return _to_response(controller.state)


app.include_router(router)
