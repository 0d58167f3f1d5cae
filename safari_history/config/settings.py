from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from safari_history.history.errors import ConfigError


class Settings(BaseSettings):
	HOME: str | None = Field(default=None)
	HISTORY_DB_PATH: str | None = Field(default=None)  # overrides $HOME/Library/Safari/History.db
	HISTORY_DB_SNAPSHOT: bool = Field(default=True)  # copy the store into memory on open

	SEARCH_DEBOUNCE_SECONDS: float = Field(default=0.0)
	SEARCH_TIMEOUT_SECONDS: float = Field(default=5.0)

	LOG_DIR: str = Field(default="./logs")
	CORS_ORIGINS: str = Field(default="*")  # comma-separated or '*'

	model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

	def ensure_runtime_dirs(self) -> None:
		"""
		Ensure that runtime directories exist at startup.
		"""
		Path(self.LOG_DIR).mkdir(parents=True, exist_ok=True)

	def resolve_history_db_path(self) -> Path:
		"""
		Location of Safari's History.db. An explicit HISTORY_DB_PATH wins,
		otherwise the store is looked up under the user's home directory.
		"""
		if self.HISTORY_DB_PATH:
			return Path(self.HISTORY_DB_PATH).expanduser()
		if not self.HOME:
			raise ConfigError("$HOME environment variable is not set.")
		return Path(self.HOME) / "Library" / "Safari" / "History.db"


@lru_cache
def get_settings() -> Settings:
	"""
	Returns a cached Settings instance loaded from environment/.env.
	Also ensures runtime directories are present.
	"""
	settings = Settings()  # type: ignore[call-arg]
	settings.ensure_runtime_dirs()
	return settings
