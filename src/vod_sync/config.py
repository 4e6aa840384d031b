"""Runtime configuration for the reconciliation run."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from urllib.parse import urlparse

DESCRIPTION_MODES = ("marker", "summary")


@dataclass(slots=True)
class TodoistSettings:
    """Task store connection settings."""

    token: str = ""
    project_id: int | None = None
    api_url: str = "https://api.todoist.com/rest/v2"
    request_timeout_seconds: float = 30.0


@dataclass(slots=True)
class LabelSettings:
    """Taxonomy label settings."""

    excluded_names: frozenset[str] = frozenset()


@dataclass(slots=True)
class ExecutionSettings:
    """Concurrency and retry policy for per-task processing."""

    concurrency: int = 3
    retry_attempts: int = 3
    retry_delay_ms: int = 1000
    description_mode: str = "marker"

    @property
    def retry_delay_seconds(self) -> float:
        return self.retry_delay_ms / 1000


@dataclass(slots=True)
class FilmwebSettings:
    """Metadata scraper settings."""

    request_timeout_seconds: float = 30.0
    max_transport_retries: int = 1


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    todoist: TodoistSettings = field(default_factory=TodoistSettings)
    labels: LabelSettings = field(default_factory=LabelSettings)
    execution: ExecutionSettings = field(default_factory=ExecutionSettings)
    filmweb: FilmwebSettings = field(default_factory=FilmwebSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment, accepting the legacy TODOIST_* names."""

        timeout = float(os.getenv("VOD_SYNC_REQUEST_TIMEOUT_SECONDS", "30.0"))
        return cls(
            todoist=TodoistSettings(
                token=os.getenv("VOD_SYNC_TODOIST_TOKEN", os.getenv("TODOIST_TOKEN", "")).strip(),
                project_id=_env_optional_int(
                    "VOD_SYNC_PROJECT_ID",
                    fallback_name="TODOIST_PROJECT",
                ),
                api_url=os.getenv(
                    "VOD_SYNC_TODOIST_API_URL",
                    "https://api.todoist.com/rest/v2",
                ).rstrip("/"),
                request_timeout_seconds=timeout,
            ),
            labels=LabelSettings(
                excluded_names=parse_excluded_names(
                    os.getenv(
                        "VOD_SYNC_EXCLUDED_LABELS",
                        os.getenv("TODOIST_LABELS_EXCLUDED", ""),
                    ),
                ),
            ),
            execution=ExecutionSettings(
                concurrency=int(os.getenv("VOD_SYNC_CONCURRENCY", "3")),
                retry_attempts=int(os.getenv("VOD_SYNC_RETRY_ATTEMPTS", "3")),
                retry_delay_ms=int(os.getenv("VOD_SYNC_RETRY_DELAY_MS", "1000")),
                description_mode=os.getenv("VOD_SYNC_DESCRIPTION_MODE", "marker").strip().lower(),
            ),
            filmweb=FilmwebSettings(request_timeout_seconds=timeout),
        )

    def validate(self) -> None:
        """Raise configuration error for missing or out-of-range values."""

        if not self.todoist.token:
            raise ValueError(
                "A Todoist API token is required. Set VOD_SYNC_TODOIST_TOKEN or TODOIST_TOKEN.",
            )
        if self.todoist.project_id is None:
            raise ValueError(
                "A Todoist project id is required. "
                "Set VOD_SYNC_PROJECT_ID or TODOIST_PROJECT, or pass --project-id.",
            )
        parsed = urlparse(self.todoist.api_url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(f"Invalid VOD_SYNC_TODOIST_API_URL: {self.todoist.api_url!r}")
        if self.execution.concurrency <= 0:
            raise ValueError("VOD_SYNC_CONCURRENCY must be > 0.")
        if self.execution.retry_attempts <= 0:
            raise ValueError("VOD_SYNC_RETRY_ATTEMPTS must be > 0.")
        if self.execution.retry_delay_ms < 0:
            raise ValueError("VOD_SYNC_RETRY_DELAY_MS must be >= 0.")
        if self.execution.description_mode not in DESCRIPTION_MODES:
            raise ValueError(
                "VOD_SYNC_DESCRIPTION_MODE must be one of "
                f"{', '.join(DESCRIPTION_MODES)}: {self.execution.description_mode!r}",
            )
        if self.todoist.request_timeout_seconds <= 0:
            raise ValueError("VOD_SYNC_REQUEST_TIMEOUT_SECONDS must be > 0.")


def parse_excluded_names(raw: str) -> frozenset[str]:
    """Parse a comma-separated exclusion list into normalized provider names.

    Entries may be given with or without the ``VOD.`` prefix; both ``NETFLIX`` and
    ``VOD.NETFLIX`` exclude the same label.
    """

    names: set[str] = set()
    for part in raw.split(","):
        token = part.strip().upper()
        if token.startswith("VOD."):
            token = token[len("VOD.") :]
        if token:
            names.add(token)
    return frozenset(names)


def _env_optional_int(name: str, *, fallback_name: str) -> int | None:
    raw = os.getenv(name, os.getenv(fallback_name, "")).strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {raw!r}") from error
