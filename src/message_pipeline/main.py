"""CLI entrypoint for message-pipeline."""

import logging
from pathlib import Path

import rich_click as click
from sqlalchemy.exc import SQLAlchemyError

from message_pipeline import __version__
from message_pipeline.controllers import (
    PipelineCliController,
    PipelineRunCommand,
    PipelineStatsCommand,
)

click.rich_click.USE_MARKDOWN = True
PIPELINE_CONTROLLER = PipelineCliController()


@click.group()
@click.version_option(version=__version__, prog_name="message-pipeline")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default="warning",
    show_default=True,
    help="Logging level for pipeline roles.",
)
def message_pipeline(log_level: str) -> None:
    """Concurrent producer / consumer / cleaner pipeline over SQLite."""

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(threadName)s %(levelname)s %(name)s: %(message)s",
    )


@message_pipeline.command("run")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--messages",
    type=click.IntRange(min=0),
    default=None,
    help="Messages inserted per producer batch.",
)
@click.option(
    "--batches",
    type=click.IntRange(min=0),
    default=None,
    help="Number of producer batches.",
)
@click.option(
    "--delay",
    type=click.FloatRange(min=0.0),
    default=None,
    help="Seconds to sleep between inserts.",
)
def run(
    db_path: Path | None,
    messages: int | None,
    batches: int | None,
    delay: float | None,
) -> None:
    """Run producer, consumer, cleaner and watcher until the store drains."""

    try:
        lines = PIPELINE_CONTROLLER.run(
            PipelineRunCommand(
                db_path=db_path,
                messages_per_batch=messages,
                batches=batches,
                delay_seconds=delay,
            ),
        )
    except (ValueError, SQLAlchemyError) as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


@message_pipeline.command("stats")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
def stats(db_path: Path | None) -> None:
    """Show message counts per state."""

    _emit_lines(PIPELINE_CONTROLLER.stats(PipelineStatsCommand(db_path=db_path)))


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    message_pipeline()
