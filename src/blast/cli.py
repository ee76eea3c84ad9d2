"""Command-line interface using Typer."""

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from blast import __version__
from blast.domain.errors import BlastError
from blast.logging import bind_request_context, setup_logging
from blast.utils.async_utils import run_async

# Setup logging
setup_logging()

app = typer.Typer(
    name="blast",
    help="Blast - video feed and change review CLI",
    add_completion=False,
)

# Subcommand groups
changes_app = typer.Typer(help="Change proposal and review commands")
videos_app = typer.Typer(help="Video feed commands")
app.add_typer(changes_app, name="changes")
app.add_typer(videos_app, name="videos")

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"Blast v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Override LOG_LEVEL for this command.",
    ),
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Blast - propose, review and promote video edits."""
    if log_level:
        setup_logging(level=log_level)
    bind_request_context(command=ctx.invoked_subcommand)


def _service():
    from blast.config import settings
    from blast.services.review import ReviewService

    if settings.metadata_store == "sql":
        from blast.db.session import init_db

        init_db()
    return ReviewService()


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error ({type(error).__name__}): {error}[/bold red]")
    raise typer.Exit(code=1)


def _changes_table(changes: list, title: str) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Status", style="cyan")
    table.add_column("Author")
    table.add_column("Description")
    table.add_column("Edit", style="green")
    table.add_column("Promotion")
    table.add_column("Created")

    for change in changes:
        promotion = "-"
        if change.promotion is not None:
            promotion = f"{change.promotion.state.value} ({change.promotion.stage.value})"
        table.add_row(
            change.id,
            change.status.value,
            change.user_id,
            change.description[:50],
            "Yes" if change.edit_url else "No",
            promotion,
            change.timestamp.strftime("%Y-%m-%d %H:%M") if change.timestamp else "-",
        )
    return table


@videos_app.command("list")
def videos_list(
    cursor: Optional[str] = typer.Option(None, "--cursor", "-c", help="Cursor from a previous page"),
) -> None:
    """List one page of the video feed."""
    try:
        page = run_async(_service().feed_page(cursor))
    except BlastError as e:
        _fail(e)
        return

    if not page.videos:
        console.print("[dim]No videos found.[/dim]")
        return

    table = Table(title="Videos")
    table.add_column("ID", style="dim")
    table.add_column("Owner")
    table.add_column("Caption", style="cyan")
    table.add_column("Likes")
    table.add_column("Edited", style="green")
    table.add_column("Previous Version")

    for video in page.videos:
        table.add_row(
            video.id,
            video.user_id,
            video.caption[:40],
            str(video.likes),
            "Yes" if video.is_edited else "No",
            video.previous_version_id or "-",
        )

    console.print(table)
    if page.has_more:
        console.print(f"[dim]Next page: --cursor {page.cursor}[/dim]")


@videos_app.command("upload")
def videos_upload(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Video file to upload"),
    user: str = typer.Option(..., "--user", "-u", help="Uploading user id"),
    caption: str = typer.Option("", "--caption", help="Video caption"),
) -> None:
    """Upload a new video to the feed."""
    ext = file.suffix.lstrip(".").lower() or "mp4"
    try:
        video = run_async(_service().upload_video(file.read_bytes(), caption, ext=ext, user_id=user))
    except BlastError as e:
        _fail(e)
        return

    console.print(f"[bold green]✓ Uploaded video {video.id}[/bold green]")
    console.print(f"URL: {video.canonical_url}")


@changes_app.command("list")
def changes_list(
    video_id: str = typer.Argument(..., help="Video to list changes for"),
) -> None:
    """List all changes proposed against a video, newest first."""
    try:
        changes = run_async(_service().list_changes(video_id))
    except BlastError as e:
        _fail(e)
        return

    if not changes:
        console.print("[dim]No changes proposed for this video.[/dim]")
        return

    console.print(_changes_table(changes, f"Changes for {video_id}"))


@changes_app.command("propose")
def changes_propose(
    video_id: str = typer.Argument(..., help="Video to propose a change against"),
    description: str = typer.Argument(..., help="What the change does"),
    user: str = typer.Option(..., "--user", "-u", help="Proposing user id"),
    edit_file: Optional[Path] = typer.Option(
        None, "--edit", "-e", exists=True, dir_okay=False, help="Edited video file"
    ),
    diff: Optional[str] = typer.Option(
        None, "--diff", help="Edit metadata as JSON (filters/adjustments/transform)"
    ),
) -> None:
    """Propose a change, optionally with an edited video."""
    diff_metadata = None
    if diff:
        try:
            diff_metadata = json.loads(diff)
        except json.JSONDecodeError as e:
            console.print(f"[bold red]Invalid --diff JSON: {e}[/bold red]")
            raise typer.Exit(code=1)

    edit_data = None
    edit_ext = "mp4"
    if edit_file is not None:
        edit_data = edit_file.read_bytes()
        edit_ext = edit_file.suffix.lstrip(".").lower() or "mp4"

    try:
        change = run_async(
            _service().propose(
                video_id,
                description,
                edit_data=edit_data,
                edit_ext=edit_ext,
                diff_metadata=diff_metadata,
                user_id=user,
            )
        )
    except BlastError as e:
        _fail(e)
        return

    console.print(f"[bold green]✓ Change proposed: {change.id}[/bold green]")


@changes_app.command("accept")
def changes_accept(
    change_id: str = typer.Argument(..., help="Change to accept"),
    user: str = typer.Option(..., "--user", "-u", help="Reviewing user id (video owner)"),
) -> None:
    """Accept a change and promote its edited video."""
    console.print("[bold blue]Accepting change...[/bold blue]")
    try:
        result = run_async(_service().accept(change_id, user_id=user))
    except BlastError as e:
        _fail(e)
        return

    lines = [f"Status: {result.change.status.value}"]
    if result.promoted_video_id:
        lines.append(f"Promoted video: {result.promoted_video_id}")
        lines.append(f"Old asset retired: {'yes' if result.old_asset_retired else 'no'}")
    if result.replayed:
        lines.append("[dim]Already accepted earlier; nothing re-promoted[/dim]")
    console.print(Panel("\n".join(lines), title="Change Accepted", border_style="green"))


@changes_app.command("reject")
def changes_reject(
    change_id: str = typer.Argument(..., help="Change to reject"),
    user: str = typer.Option(..., "--user", "-u", help="Reviewing user id (video owner)"),
) -> None:
    """Reject a change and discard its edited video."""
    try:
        result = run_async(_service().reject(change_id, user_id=user))
    except BlastError as e:
        _fail(e)
        return

    console.print(f"[bold yellow]Change {result.change.id} rejected[/bold yellow]")
    if result.change.edit_url and not result.edit_asset_deleted:
        console.print("[dim]Edit asset could not be deleted and was left in storage[/dim]")


if __name__ == "__main__":
    app()
