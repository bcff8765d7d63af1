"""CLI entrypoint for daily-story."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

import rich_click as click

from daily_story import __version__
from daily_story.controllers import (
    GenerateCommand,
    ListCommand,
    ServeCommand,
    ShowCommand,
    StoryCliController,
)
from daily_story.errors import StoryError
from daily_story.services import DEFAULT_PAGE_SIZE

click.rich_click.USE_MARKDOWN = True
STORY_CONTROLLER = StoryCliController()

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@click.group()
@click.version_option(version=__version__, prog_name="daily-story")
def daily_story() -> None:
    """Daily story CLI."""


@daily_story.command("generate")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--theme", default=None, help="Optional story theme; random when omitted.")
@click.option("--model", default=None, help="Override DAILY_STORY_MODEL for this run.")
def generate(db_path: Path | None, theme: str | None, model: str | None) -> None:
    """Return today's story, generating it if it does not exist yet."""

    with _cli_errors():
        lines = STORY_CONTROLLER.generate(
            GenerateCommand(db_path=db_path, theme=theme, model=model),
        )
    _emit_lines(lines)


@daily_story.command("show")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--date",
    "story_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Story date (YYYY-MM-DD). The latest story is shown when omitted.",
)
def show(db_path: Path | None, story_date: datetime | None) -> None:
    """Show the story for a date."""

    parsed = story_date.date() if story_date is not None else None
    with _cli_errors():
        result = STORY_CONTROLLER.show(ShowCommand(db_path=db_path, story_date=parsed))
    if not result.found:
        raise click.ClickException("\n".join(result.lines))
    _emit_lines(result.lines)


@daily_story.command("list")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--page", type=int, default=1, show_default=True, help="Page number (>= 1).")
@click.option(
    "--page-size",
    type=int,
    default=DEFAULT_PAGE_SIZE,
    show_default=True,
    help="Stories per page, clamped to 1..50.",
)
def list_stories(db_path: Path | None, page: int, page_size: int) -> None:
    """List stories, newest first."""

    with _cli_errors():
        lines = STORY_CONTROLLER.list_stories(
            ListCommand(db_path=db_path, page=page, page_size=page_size),
        )
    _emit_lines(lines)


@daily_story.command("serve")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--theme", default=None, help="Optional story theme for scheduled runs.")
@click.option("--model", default=None, help="Override DAILY_STORY_MODEL for scheduled runs.")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
)
def serve(db_path: Path | None, theme: str | None, model: str | None, log_level: str) -> None:
    """Run the daily generation scheduler until interrupted (SIGINT/SIGTERM)."""

    logging.basicConfig(level=log_level.upper(), format=LOG_FORMAT)
    with _cli_errors():
        lines = STORY_CONTROLLER.serve(ServeCommand(db_path=db_path, theme=theme, model=model))
    _emit_lines(lines)


@contextmanager
def _cli_errors() -> Iterator[None]:
    try:
        yield
    except (StoryError, ValueError) as error:
        raise click.ClickException(str(error)) from error


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    daily_story()
