"""Unified settings for conf-request-api."""

import tomllib
from pathlib import Path
from typing import ClassVar, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


def read_pyproject(pyproject_path: Path) -> dict:
    """Read pyproject.toml into a dict."""
    with pyproject_path.open("rb") as file_handle:
        return tomllib.load(file_handle)


def get_version(base_dir: Path) -> str:
    """Get version from git tags or fallback to package metadata."""
    try:
        import git

        repo = git.Repo(base_dir, search_parent_directories=True)
        latest_tag = max(repo.tags, key=lambda t: t.commit.committed_datetime, default=None)
        return str(latest_tag) if latest_tag else "0.0.0"
    except Exception:
        try:
            import importlib.metadata

            return importlib.metadata.version("conf-request-api")
        except Exception:
            return "0.0.0"


class Settings(BaseSettings):
    """Unified settings for conf-request-api service."""

    DEBUG: bool = True
    ENVIRONMENT: Literal["DEV", "PROD"] = "DEV"

    # ClassVar to prevent Pydantic from trying to load from env
    BASE_DIR: ClassVar[Path] = Path(__file__).parent.parent.parent
    PROJECT: ClassVar[dict] = read_pyproject(BASE_DIR / "pyproject.toml")
    API_NAME: ClassVar[str] = PROJECT.get("project", {}).get("name", "conf-request-api")
    API_DESCRIPTION: ClassVar[str] = PROJECT.get("project", {}).get("description", "Conference request layer")
    API_VERSION: ClassVar[str] = get_version(BASE_DIR)

    # Server
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    BASE_PATH: str = "/"

    # Sessions and cookies
    SESSION_COOKIE: str = "qsid"
    SESSION_LIFETIME: int = 86400 * 7
    SESSION_DOMAIN: str = ""
    SESSION_SECURE: bool = False
    SESSION_SAMESITE: str = "Lax"
    CONF_SESSION_KEY: str | None = "main"

    # Uploads and request bodies
    UPLOAD_MAX_FILESIZE: int = 16 * 1024 * 1024
    UPLOAD_TMP_DIR: Path | None = None
    TEMP_DIR: Path | None = None

    # Storage
    DATABASE_PATH: Path = BASE_DIR / "data" / "conf.sqlite3"

    # Identities allowed to edit shared tag annotations
    CHAIR_EMAILS: list[str] = []

    @property
    def api_url(self) -> str:
        return f"http://{self.API_HOST}:{self.API_PORT}"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()  # type: ignore
