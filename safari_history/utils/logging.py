import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict

from safari_history.config.settings import get_settings


class JsonFormatter(logging.Formatter):
	"""
	One JSON object per line. Events are logged as dicts
	(``logger.info({"event": "search_settled", "count": 3})``) and embedded
	as-is under "message"; plain string messages, such as the event names
	passed to ``logger.exception``, are rendered with getMessage().
	"""

	def format(self, record: logging.LogRecord) -> str:
		payload: Dict[str, Any] = {
			"level": record.levelname,
			"logger": record.name,
			"message": record.msg if isinstance(record.msg, dict) else record.getMessage(),
			"time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
		}
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		return json.dumps(payload, ensure_ascii=False, default=str)


def get_logger(name: str) -> logging.Logger:
	logger = logging.getLogger(name)
	if logger.handlers:
		return logger

	settings = get_settings()
	log_dir = Path(settings.LOG_DIR)
	log_dir.mkdir(parents=True, exist_ok=True)
	log_file = log_dir / "server.log"

	logger.setLevel(logging.INFO)

	# Console handler
	console_handler = logging.StreamHandler(sys.stdout)
	console_handler.setFormatter(JsonFormatter())
	logger.addHandler(console_handler)

	# Rotating file handler
	file_handler = RotatingFileHandler(log_file, maxBytes=5_000_000, backupCount=3, encoding="utf-8")
	file_handler.setFormatter(JsonFormatter())
	logger.addHandler(file_handler)

	return logger
