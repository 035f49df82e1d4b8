"""Runtime configuration for the article pipeline."""

from __future__ import annotations

import os
from typing import Callable, Mapping

from attrs import define, field, fields

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Linux; Android 14) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Mobile Safari/537.36 artview"
)

# Prefix shared by all environment variables read by ``from_env``.
ENV_PREFIX = "ARTVIEW_"


def _positive(instance: object, attribute: object, value: float) -> None:
    """Reject zero or negative settings."""

    if value <= 0:
        name = getattr(attribute, "name", "value")
        raise ValueError(f"{name} must be positive, got {value!r}")


@define(frozen=True, slots=True)
class PipelineConfig:
    """Settings shared by the fetcher, the classifier and the orchestrator.

    Attributes:
        timeout: Hard limit in seconds for fetching a page.
        max_redirects: Maximum number of redirects followed by the fetcher.
        user_agent: ``User-Agent`` header sent with every request.
        max_bytes: Maximum number of body bytes read from the server.
        min_text_length: Minimum visible text length of an article.
        min_blocks: Minimum number of content blocks worth displaying.
        max_nodes: Maximum number of elements inspected per pass.
        max_workers: Size of the worker pool used by the orchestrator.
    """

    timeout: float = field(default=10.0, validator=_positive)
    max_redirects: int = 5
    user_agent: str = DEFAULT_USER_AGENT
    max_bytes: int = field(default=5 * 1024 * 1024, validator=_positive)
    min_text_length: int = 200
    min_blocks: int = 3
    max_nodes: int = field(default=20000, validator=_positive)
    max_workers: int = field(default=4, validator=_positive)

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None
    ) -> "PipelineConfig":
        """Build a configuration from ``ARTVIEW_*`` environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``.

        Returns:
            Configuration where every variable that is set overrides the
            corresponding default.

        Raises:
            ValueError: If a variable cannot be converted to its type.
        """

        environ = os.environ if environ is None else environ
        values: dict[str, object] = {}

        for attribute in fields(cls):
            name = ENV_PREFIX + attribute.name.upper()
            raw = environ.get(name)
            if raw is None or raw.strip() == "":
                continue

            # Convert using the type of the default value.
            convert: Callable[[str], object] = type(attribute.default)
            try:
                values[attribute.name] = convert(raw.strip())
            except ValueError as exc:
                raise ValueError(f"Invalid value for {name}: {raw!r}") from exc

        return cls(**values)  # type: ignore[arg-type]
