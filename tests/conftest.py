from datetime import datetime
from pathlib import Path
from typing import Iterable, Tuple
import sqlite3

import pytest

from safari_history.history.models import to_vendor_timestamp


Visit = Tuple[str, str, datetime]


def make_history_db(path: Path, visits: Iterable[Visit], title_on_visits: bool = False) -> Path:
	"""
	Write a minimal Safari-shaped History.db. Each (url, title, when) is one
	visit; repeated urls share one history_items row.
	"""
	conn = sqlite3.connect(str(path))
	try:
		if title_on_visits:
			conn.executescript(
				"""
				CREATE TABLE history_items (id INTEGER PRIMARY KEY, url TEXT NOT NULL UNIQUE);
				CREATE TABLE history_visits (
					id INTEGER PRIMARY KEY,
					history_item INTEGER NOT NULL REFERENCES history_items(id),
					visit_time REAL NOT NULL,
					title TEXT
				);
				"""
			)
		else:
			conn.executescript(
				"""
				CREATE TABLE history_items (id INTEGER PRIMARY KEY, url TEXT NOT NULL UNIQUE, title TEXT);
				CREATE TABLE history_visits (
					id INTEGER PRIMARY KEY,
					history_item INTEGER NOT NULL REFERENCES history_items(id),
					visit_time REAL NOT NULL
				);
				"""
			)
		for url, title, when in visits:
			row = conn.execute("SELECT id FROM history_items WHERE url = ?", (url,)).fetchone()
			if row:
				item_id = row[0]
			elif title_on_visits:
				item_id = conn.execute("INSERT INTO history_items(url) VALUES (?)", (url,)).lastrowid
			else:
				item_id = conn.execute("INSERT INTO history_items(url, title) VALUES (?, ?)", (url, title)).lastrowid
			if title_on_visits:
				conn.execute(
					"INSERT INTO history_visits(history_item, visit_time, title) VALUES (?, ?, ?)",
					(item_id, to_vendor_timestamp(when), title),
				)
			else:
				conn.execute(
					"INSERT INTO history_visits(history_item, visit_time) VALUES (?, ?)",
					(item_id, to_vendor_timestamp(when)),
				)
		conn.commit()
	finally:
		conn.close()
	return path


@pytest.fixture
def history_db(tmp_path):
	def _make(visits: Iterable[Visit], **kwargs) -> Path:
		return make_history_db(tmp_path / "History.db", visits, **kwargs)

	return _make
