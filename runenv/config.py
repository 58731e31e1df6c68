"""Runtime environment configuration: env-driven, file-backed overrides.

Centralized config using pydantic-settings. Reads from a .env file and
RUNENV_* environment variables. Repository overrides (``repo-<name>=<url>``)
are additionally read from a persisted ``.properties`` file so that operators
can redirect a logical repository without touching code.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CENTRAL_REPOSITORY = "https://repo1.maven.org/maven2"


class RunEnvConfig(BaseSettings):
    """Runtime environment configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export RUNENV_LIBRARY_DIR=/var/cache/app/libs
        export RUNENV_CENTRAL_REPOSITORY=https://maven.aliyun.com/repository/central
        export RUNENV_FALLBACK_REPOSITORIES='["https://repo.maven.apache.org/maven2"]'

    Or via the properties file (``runtime/env.properties``)::

        repo-central=https://mirror.example.com/maven2
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="RUNENV_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Cache layout
    library_dir: Path = Path("runtime/libs")
    assets_dir: Path = Path("runtime/assets")

    # Repositories
    central_repository: str = DEFAULT_CENTRAL_REPOSITORY
    fallback_repositories: list[str] = []
    repositories: dict[str, str] = {}  # "repo-<name>" -> url
    properties_file: Path = Path("runtime/env.properties")

    # Shared runtimes
    isolated_mode: bool = False
    skip_shared_relocate: bool = False

    # Network
    http_timeout: float = 30.0

    # Observability
    log_level: str = "INFO"

    def repository_overrides(self) -> dict[str, str]:
        """Merged ``repo-<name>`` overrides; the properties file wins."""
        merged = dict(self.repositories)
        merged.update(load_properties(self.properties_file))
        return merged


def load_properties(path: Path) -> dict[str, str]:
    """Read a ``key=value`` properties file. A missing file yields ``{}``."""
    path = Path(path)
    if not path.is_file():
        return {}
    props: dict[str, str] = {}
    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line[0] in "#!":
            continue
        cut = min((i for i in (line.find("="), line.find(":")) if i >= 0), default=-1)
        if cut < 0:
            props[line] = ""
            continue
        props[line[:cut].strip()] = line[cut + 1:].strip()
    return props
