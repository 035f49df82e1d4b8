import logging
import re
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any, Optional

import click
import yaml  # type: ignore
from dotenv import load_dotenv

from artview.config import PipelineConfig
from artview.dispatch import immediate
from artview.errors import ArtviewError
from artview.extractor.article import Article
from artview.json_utils import json_dumps, to_data
from artview.pipeline import (
    ArticlePipeline,
    article_from_html,
    extract_article_content,
    policy_for,
)
from artview.reader import (
    LOAD_FAILED,
    NOT_AN_ARTICLE,
    TOO_FEW_BLOCKS,
    should_fall_back,
)

try:
    __version__ = version("artview")
except PackageNotFoundError:
    __version__ = "0.0.1-dev"


@click.group()
@click.option("--debug/--no-debug", default=False)
@click.option("--trace/--no-trace", default=False)
@click.option(
    "--log-file",
    type=click.Path(file_okay=True, dir_okay=False),
    envvar="ARTVIEW_LOG_FILE",
)
@click.version_option(__version__, prog_name="artview")
def cli(debug: bool, trace: bool, log_file: Optional[str] = None) -> None:
    """Configure logging and load environment variables.

    Args:
        debug: Toggle debug logging.
        trace: Toggle trace logging.
        log_file: Optional path to the log file.
    """
    if trace:
        level = 1
    elif debug:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        filename=log_file,
        level=level,
        format="[%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if trace:
        logging.debug("Trace mode is on")
    if debug:
        logging.debug("Debug mode is on")
    load_dotenv()


def _config() -> PipelineConfig:
    """Read the pipeline settings from the environment."""

    try:
        return PipelineConfig.from_env()
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc


def _output_name(source: str) -> str:
    """Build a file name stem from a URL or a path."""

    stem = re.sub(r"^[a-z]+://", "", source)
    stem = re.sub(r"[^A-Za-z0-9]+", "-", stem).strip("-")
    return stem[:100] or "article"


def _write(
    data: Any,  # noqa: ANN401
    source: str,
    output_path: Optional[str],
    output_format: str,
) -> None:
    """Print ``data`` or write it to a file or directory.

    Args:
        data: Plain data to serialize.
        source: URL or path the data comes from, used to name files.
        output_path: Optional file or directory path. If a directory is
            provided, the file name is generated from ``source``.
        output_format: ``json`` or ``yaml``.
    """

    if output_format == "json":
        content = json_dumps(data)
    else:
        content = yaml.safe_dump(data, allow_unicode=True, sort_keys=False)

    if not output_path:
        click.echo(content)
        return

    # When the user passes a directory, generate the file name from the
    # source and the chosen format extension.
    final_path = Path(output_path)
    if final_path.is_dir():
        final_path = final_path / f"{_output_name(source)}.{output_format}"
    final_path.write_text(content, encoding="utf-8")


def _result(
    url: str,
    article: Optional[Article],
    blocks: list,
    reason: Optional[str] = None,
    failure: Optional[str] = None,
) -> dict:
    return {
        "url": url,
        "article": to_data(article),
        "blocks": to_data(blocks),
        "fallback": reason is not None,
        "reason": reason,
        "failure": failure,
    }


output_option = click.option(
    "--output",
    "output_path",
    type=click.Path(file_okay=True, dir_okay=True),
    default=None,
    help="Write output to FILE or DIRECTORY instead of the console.",
)
format_option = click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "yaml"]),
    default="json",
    help="Output format.",
)


@cli.command()
@click.argument("url")
@output_option
@format_option
def load(
    url: str,
    output_path: Optional[str] = None,
    output_format: str = "json",
) -> None:
    """Fetch a page and report its metadata and article verdict.

    Args:
        url: Address of the page.
        output_path: Optional file or directory for the result.
        output_format: Format of the result.
    """

    config = _config()
    loaded: list = []

    with ArticlePipeline(config, max_workers=1) as pipeline:
        request = pipeline.load_article(url, loaded.append, deliver=immediate)
        request.wait()
        article = loaded[0] if loaded else None

        # The document is not needed; only the verdict is reported.
        request.cancel()

    if article is None:
        data = _result(url, None, [], LOAD_FAILED, request.failure)
    elif not article.is_article:
        data = _result(url, article, [], NOT_AN_ARTICLE)
    else:
        data = _result(url, article, [])
    _write(data, url, output_path, output_format)


@cli.command()
@click.argument("url")
@output_option
@format_option
@click.option(
    "--min-blocks",
    type=int,
    default=None,
    help="Blocks needed for the reader view [default: ARTVIEW_MIN_BLOCKS].",
)
def extract(
    url: str,
    output_path: Optional[str] = None,
    output_format: str = "json",
    min_blocks: Optional[int] = None,
) -> None:
    """Fetch a page and extract its article content.

    Args:
        url: Address of the page.
        output_path: Optional file or directory for the result.
        output_format: Format of the result.
        min_blocks: Minimum number of blocks for the reader view.
    """

    config = _config()
    threshold = config.min_blocks if min_blocks is None else min_blocks
    loaded: list = []
    parsed: list = []

    with ArticlePipeline(config, max_workers=1) as pipeline:
        request = pipeline.load_article(url, loaded.append, deliver=immediate)
        request.wait()
        article = loaded[0] if loaded else None

        if article is None:
            data = _result(url, None, [], LOAD_FAILED, request.failure)
        elif not article.is_article:
            data = _result(url, article, [], NOT_AN_ARTICLE)
        else:
            pipeline.parse_article_content(
                request, parsed.append, deliver=immediate
            ).wait()
            blocks = parsed[0] if parsed else []
            reason = (
                TOO_FEW_BLOCKS if should_fall_back(blocks, threshold) else None
            )
            data = _result(url, article, blocks, reason)

    _write(data, url, output_path, output_format)


@cli.command()
@click.argument(
    "file", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option(
    "--url",
    "base_url",
    default=None,
    help="URL the page was saved from, used to resolve links.",
)
@output_option
@format_option
def parse(
    file: Path,
    base_url: Optional[str] = None,
    output_path: Optional[str] = None,
    output_format: str = "json",
) -> None:
    """Run both phases on a saved HTML file.

    Args:
        file: HTML file to read.
        base_url: Original URL of the page.
        output_path: Optional file or directory for the result.
        output_format: Format of the result.
    """

    config = _config()
    url = base_url or file.resolve().as_uri()

    try:
        article = article_from_html(file.read_bytes(), url, config)
    except ArtviewError as exc:
        raise click.ClickException(f"{file}: {exc}") from exc

    if not article.is_article:
        data = _result(url, article, [], NOT_AN_ARTICLE)
    else:
        blocks = extract_article_content(article, policy_for(config))
        reason = (
            TOO_FEW_BLOCKS
            if should_fall_back(blocks, config.min_blocks)
            else None
        )
        data = _result(url, article, blocks, reason)

    _write(data, str(file), output_path, output_format)
