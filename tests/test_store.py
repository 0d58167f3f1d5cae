from datetime import datetime, timedelta, timezone
import sqlite3

import pytest

from safari_history.history import store
from safari_history.history.errors import OpenError, QueryError
from safari_history.history.query import compile_query
from safari_history.history.store import HistoryDatabase, close_db, execute, open_db


NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


def _visits():
	return [
		("https://a.com", "Alpha", NOW - timedelta(minutes=5)),
		("https://b.com", "Beta", NOW - timedelta(hours=1)),
		("https://docs.python.org/3/library/sqlite3.html", "sqlite3 — DB-API 2.0 interface", NOW - timedelta(days=1)),
	]


def _urls(rows):
	return [r[1] for r in rows]


def test_open_missing_file(tmp_path):
	with pytest.raises(OpenError, match="not found"):
		open_db(tmp_path / "missing.db")


def test_open_not_a_database(tmp_path):
	p = tmp_path / "History.db"
	p.write_bytes(b"this is not sqlite at all" * 100)
	with pytest.raises(OpenError):
		open_db(p)


def test_open_wrong_schema(tmp_path):
	p = tmp_path / "History.db"
	conn = sqlite3.connect(str(p))
	conn.execute("CREATE TABLE history_items (id INTEGER PRIMARY KEY, url TEXT)")
	conn.commit()
	conn.close()
	with pytest.raises(OpenError, match="history_visits"):
		open_db(p)


@pytest.mark.parametrize("snapshot", [True, False])
def test_plain_query_orders_by_recency(history_db, snapshot):
	conn = open_db(history_db(_visits()), snapshot=snapshot)
	try:
		q = compile_query("")
		rows = execute(conn, q.sql, q.params)
	finally:
		close_db(conn)
	assert _urls(rows) == ["https://a.com", "https://b.com", "https://docs.python.org/3/library/sqlite3.html"]
	assert rows[0][2] == "Alpha"


def test_title_on_visits_layout(history_db):
	conn = open_db(history_db(_visits(), title_on_visits=True))
	try:
		q = compile_query("beta")
		rows = execute(conn, q.sql, q.params)
	finally:
		close_db(conn)
	assert _urls(rows) == ["https://b.com"]


def test_terms_match_title_or_url_case_insensitively(history_db):
	conn = open_db(history_db(_visits()))
	try:
		by_title = execute(conn, *compile_query("ALPHA"))
		by_url = execute(conn, *compile_query("b.com"))
		mixed = execute(conn, *compile_query("python sqlite3"))
		none = execute(conn, *compile_query("xyz"))
	finally:
		close_db(conn)
	assert _urls(by_title) == ["https://a.com"]
	assert _urls(by_url) == ["https://b.com"]
	assert _urls(mixed) == ["https://docs.python.org/3/library/sqlite3.html"]
	assert none == []


def test_token_order_matches_same_rows(history_db):
	conn = open_db(history_db(_visits()))
	try:
		ab = execute(conn, *compile_query("docs interface"))
		ba = execute(conn, *compile_query("interface docs"))
	finally:
		close_db(conn)
	assert set(ab) == set(ba)
	assert len(ab) == 1


def test_percent_in_term_acts_as_wildcard(history_db):
	conn = open_db(history_db(_visits()))
	try:
		rows = execute(conn, *compile_query("a%com"))
	finally:
		close_db(conn)
	assert "https://a.com" in _urls(rows)


def test_repeat_visits_collapse_to_one_row(history_db):
	visits = [("https://a.com", "Alpha", NOW - timedelta(minutes=m)) for m in (1, 30, 90)]
	visits.append(("https://b.com", "Beta", NOW - timedelta(minutes=10)))
	conn = open_db(history_db(visits))
	try:
		rows = execute(conn, *compile_query(""))
	finally:
		close_db(conn)
	assert sorted(_urls(rows)) == ["https://a.com", "https://b.com"]


def test_results_are_limited(history_db):
	visits = [(f"https://site{i}.example", f"Site {i}", NOW - timedelta(minutes=i)) for i in range(45)]
	conn = open_db(history_db(visits))
	try:
		rows = execute(conn, *compile_query("site"))
	finally:
		close_db(conn)
	assert len(rows) == 40
	assert rows[0][1] == "https://site0.example"


def test_malformed_sql_is_query_error(history_db):
	conn = open_db(history_db(_visits()))
	try:
		with pytest.raises(QueryError):
			execute(conn, "select nope from nowhere", [])
	finally:
		close_db(conn)


@pytest.mark.asyncio
async def test_history_database_opens_once_and_closes(history_db, monkeypatch):
	path = history_db(_visits())
	opened = []
	closed = []
	real_open = store.open_db
	real_close = store.close_db

	def counting_open(p, snapshot=True):
		conn = real_open(p, snapshot)
		opened.append(conn)
		return conn

	def counting_close(conn):
		closed.append(conn)
		real_close(conn)

	monkeypatch.setattr(store, "open_db", counting_open)
	monkeypatch.setattr(store, "close_db", counting_close)

	db = HistoryDatabase(path)
	assert not db.is_open
	first = await db.fetch(compile_query("alpha"))
	second = await db.fetch(compile_query(""))
	assert _urls(first) == ["https://a.com"]
	assert len(second) == 3
	assert len(opened) == 1

	await db.aclose()
	await db.aclose()
	assert closed == opened
	assert db.closed

	with pytest.raises(OpenError):
		await db.fetch(compile_query(""))


@pytest.mark.asyncio
async def test_history_database_open_error_propagates(tmp_path):
	db = HistoryDatabase(tmp_path / "missing.db")
	with pytest.raises(OpenError):
		await db.fetch(compile_query(""))
	assert not db.is_open
	await db.aclose()
