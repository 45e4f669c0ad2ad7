"""mpe - Master Prompt Editor CLI."""

from __future__ import annotations

import json
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Any

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table
from sqlalchemy.orm import Session

from mpe import __version__
from mpe.config import configure_logging, default_db_path
from mpe.database import get_session_factory, init_db, reset_engine
from mpe.exceptions import MPEError
from mpe.models.prompt import Prompt
from mpe.schemas.collaboration import CommentOut, LibraryOut, VoteOut
from mpe.schemas.evaluation import EvaluationOut
from mpe.schemas.prompt import PromptOut, PromptVersionOut
from mpe.schemas.responsible_ai import EthicalTemplateOut
from mpe.services import (
    CollaborationService,
    EvaluationService,
    PromptService,
    ResponsibleAIService,
)


def _version_callback(value: bool) -> None:
    if value:
        print(f"mpe {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="mpe",
    help="Master Prompt Editor: version, review and evaluate prompts.",
    add_completion=False,
    no_args_is_help=True,
)
collab_app = typer.Typer(help="Votes, comments and annotations.", no_args_is_help=True)
library_app = typer.Typer(help="Shared prompt libraries.", no_args_is_help=True)
eval_app = typer.Typer(help="Evaluations, cost analytics and A/B tests.", no_args_is_help=True)
ethics_app = typer.Typer(help="Bias detection and ethical templates.", no_args_is_help=True)
app.add_typer(collab_app, name="collab")
app.add_typer(library_app, name="library")
app.add_typer(eval_app, name="eval")
app.add_typer(ethics_app, name="ethics")


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show version and exit.",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", help="Log debug output to stderr.")
    ] = False,
) -> None:
    """Master Prompt Editor: version, review and evaluate prompts."""
    configure_logging(verbose)


console = Console()

DbOption = Annotated[
    Path | None,
    typer.Option("--db", envvar="MPE_DB", help="Override path to SQLite database."),
]
JsonOption = Annotated[bool, typer.Option("--json", help="Output as JSON.")]


def _db_path(db: Path | None) -> Path:
    return db if db is not None else default_db_path()


@contextmanager
def _session(db: Path | None) -> Iterator[Session]:
    """Yield a session on a migrated database; commit on success."""
    path = _db_path(db)
    reset_engine()
    init_db(path)
    session = get_session_factory(path)()
    try:
        yield session
        session.commit()
    except (ValueError, MPEError) as exc:
        session.rollback()
        rprint(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from None
    finally:
        session.close()
        reset_engine()


def _echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


def _read_content(content: str | None, file: Path | None, required: bool = True) -> str | None:
    if content and file:
        rprint("[red]Error:[/red] Provide --content or --file, not both.")
        raise typer.Exit(1) from None
    if file:
        if not file.exists():
            rprint(f"[red]Error:[/red] File not found: {file}")
            raise typer.Exit(1) from None
        return file.read_text(encoding="utf-8")
    if content == "-":
        return sys.stdin.read()
    if content is None and required:
        rprint("[red]Error:[/red] Provide prompt content via --content or --file.")
        raise typer.Exit(1) from None
    return content


def _fmt_time(value: Any) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else ""


ContentOption = Annotated[
    str | None,
    typer.Option("--content", "-c", help="Prompt content. Use - to read from stdin."),
]
FileOption = Annotated[
    Path | None,
    typer.Option("--file", "-f", help="Read prompt content from a file."),
]


# ------------------------------------------------------------------
# init
# ------------------------------------------------------------------


@app.command()
def init(db: DbOption = None) -> None:
    """Initialize the mpe database."""
    path = _db_path(db)
    reset_engine()
    init_db(path)
    reset_engine()
    rprint(f"[green]✓[/green] Database initialized at [bold]{path}[/bold]")


# ------------------------------------------------------------------
# create / update
# ------------------------------------------------------------------


@app.command()
def create(
    name: Annotated[str, typer.Option("--name", "-n", help="Prompt name")] = "Untitled Prompt",
    content: ContentOption = None,
    file: FileOption = None,
    description: Annotated[str, typer.Option("--description", "-d")] = "",
    tag: Annotated[
        list[str] | None,
        typer.Option("--tag", "-t", help="Tags for this prompt (repeatable)."),
    ] = None,
    category: Annotated[str, typer.Option("--category")] = "general",
    domain: Annotated[str, typer.Option("--domain")] = "general",
    author: Annotated[str, typer.Option("--author", "-a")] = "",
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Create a prompt at version 1.0.0."""
    text = _read_content(content, file, required=False) or ""
    with _session(db) as session:
        prompt = PromptService(session).create_prompt(
            name=name,
            description=description,
            content=text,
            tags=tag or [],
            category=category,
            domain=domain,
            metadata={"author": author},
        )
        if json_output:
            _echo_json(PromptOut.from_model(prompt).model_dump(mode="json"))
        else:
            rprint(
                f"[green]✓[/green] Created [bold]{prompt.name}[/bold] v{prompt.current_version}"
                f" (id: {prompt.id})"
            )
            if "needs-review" in prompt.ethical_tags:
                rprint("[yellow]![/yellow] Bias check flagged this prompt for review.")


@app.command()
def update(
    prompt_id: Annotated[str, typer.Argument(help="Prompt id")],
    name: Annotated[str | None, typer.Option("--name", "-n")] = None,
    description: Annotated[str | None, typer.Option("--description", "-d")] = None,
    category: Annotated[str | None, typer.Option("--category")] = None,
    domain: Annotated[str | None, typer.Option("--domain")] = None,
    db: DbOption = None,
) -> None:
    """Update a prompt's name, description, category or domain."""
    with _session(db) as session:
        prompt = PromptService(session).update_metadata(
            prompt_id, name=name, description=description, category=category, domain=domain
        )
        rprint(f"[green]✓[/green] Updated [bold]{prompt.name}[/bold]")


# ------------------------------------------------------------------
# edit
# ------------------------------------------------------------------


@app.command()
def edit(
    prompt_id: Annotated[str, typer.Argument(help="Prompt id")],
    content: ContentOption = None,
    file: FileOption = None,
    author: Annotated[str, typer.Option("--author", "-a")] = "",
    rationale: Annotated[str, typer.Option("--rationale", "-r")] = "",
    expected_outcome: Annotated[str, typer.Option("--expected-outcome", "-e")] = "",
    db: DbOption = None,
) -> None:
    """Save new content as the next version of a prompt."""
    text = _read_content(content, file)
    with _session(db) as session:
        service = PromptService(session)
        before = service.get_prompt(prompt_id).current_version
        prompt = service.add_version(
            prompt_id,
            text or "",
            metadata={
                "author": author,
                "rationale": rationale,
                "expected_outcome": expected_outcome,
            },
        )
        if prompt.current_version == before:
            rprint(f"[dim]No changes; still at v{before}.[/dim]")
        else:
            rprint(
                f"[green]✓[/green] [bold]{prompt.name}[/bold] v{before} → v{prompt.current_version}"
            )


# ------------------------------------------------------------------
# list
# ------------------------------------------------------------------


@app.command("list")
def list_prompts(
    category: Annotated[str | None, typer.Option("--category")] = None,
    tag: Annotated[str | None, typer.Option("--tag", "-t")] = None,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List all prompts."""
    with _session(db) as session:
        prompts = PromptService(session).list_prompts(category=category, tag=tag)
        if json_output:
            _echo_json([_prompt_row(p) for p in prompts])
            return
        if not prompts:
            rprint("[dim]No prompts found.[/dim]")
            return

        table = Table(title="Prompts")
        table.add_column("Id", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Version", justify="right")
        table.add_column("Category")
        table.add_column("Tags")
        table.add_column("Created", style="dim")
        for p in prompts:
            table.add_row(
                p.id,
                p.name,
                p.current_version,
                p.category,
                ", ".join(p.tag_names) or "-",
                _fmt_time(p.created_at),
            )
        console.print(table)


def _prompt_row(prompt: Prompt) -> dict[str, Any]:
    return {
        "id": prompt.id,
        "name": prompt.name,
        "category": prompt.category,
        "domain": prompt.domain,
        "tags": prompt.tag_names,
        "current_version": prompt.current_version,
        "versions": len(prompt.versions),
        "created_at": prompt.created_at.isoformat() if prompt.created_at else None,
    }


# ------------------------------------------------------------------
# log
# ------------------------------------------------------------------


@app.command()
def log(
    prompt_id: Annotated[str, typer.Argument(help="Prompt id")],
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show version history for a prompt."""
    with _session(db) as session:
        prompt = PromptService(session).get_prompt(prompt_id)
        if json_output:
            _echo_json(
                [
                    {
                        "version": v.version,
                        "hash": v.content_hash[:12],
                        "author": v.author,
                        "rationale": v.rationale,
                        "current": v.version == prompt.current_version,
                        "created_at": v.created_at.isoformat() if v.created_at else None,
                    }
                    for v in prompt.versions
                ]
            )
            return

        table = Table(title=f"Versions of '{prompt.name}'")
        table.add_column("", width=1)
        table.add_column("Version", justify="right", style="cyan")
        table.add_column("Hash", style="dim")
        table.add_column("Author")
        table.add_column("Rationale")
        table.add_column("Created", style="dim")
        for v in prompt.versions:
            table.add_row(
                "*" if v.version == prompt.current_version else "",
                v.version,
                v.content_hash[:12],
                v.author or "-",
                v.rationale or "-",
                _fmt_time(v.created_at),
            )
        console.print(table)


# ------------------------------------------------------------------
# show
# ------------------------------------------------------------------


@app.command()
def show(
    prompt_id: Annotated[str, typer.Argument(help="Prompt id")],
    version: Annotated[
        str | None,
        typer.Option("--version", "-v", help="Version (default: current)."),
    ] = None,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show the content of a prompt version."""
    with _session(db) as session:
        service = PromptService(session)
        prompt = service.get_prompt(prompt_id)
        ver = service.get_version(prompt_id, version) if version else prompt.current

        if json_output:
            data = PromptVersionOut.from_model(ver).model_dump(mode="json")
            data.update(id=prompt.id, name=prompt.name, ethical_tags=prompt.ethical_tags)
            _echo_json(data)
            return

        rprint(f"[bold cyan]{prompt.name}[/bold cyan] v{ver.version}")
        rprint(
            f"[dim]Hash: {ver.content_hash[:12]} | "
            f"Tags: {', '.join(prompt.tag_names) or 'none'} | "
            f"Ethics: {', '.join(prompt.ethical_tags) or 'none'}[/dim]"
        )
        rprint()
        console.print(ver.content, markup=False, highlight=False)


# ------------------------------------------------------------------
# diff
# ------------------------------------------------------------------


@app.command()
def diff(
    prompt_id: Annotated[str, typer.Argument(help="Prompt id")],
    v1: Annotated[str, typer.Argument(help="First version")],
    v2: Annotated[str, typer.Argument(help="Second version")],
    db: DbOption = None,
) -> None:
    """Show a unified diff between two versions of a prompt."""
    with _session(db) as session:
        result = PromptService(session).diff_versions(prompt_id, v1, v2)
        if not result:
            rprint("[dim]No differences.[/dim]")
            return
        # Colorize diff output
        for line in result.splitlines():
            if line.startswith("+++") or line.startswith("---"):
                style = "bold"
            elif line.startswith("+"):
                style = "green"
            elif line.startswith("-"):
                style = "red"
            elif line.startswith("@@"):
                style = "cyan"
            else:
                style = None
            console.print(line, style=style, markup=False, highlight=False)


# ------------------------------------------------------------------
# rollback
# ------------------------------------------------------------------


@app.command()
def rollback(
    prompt_id: Annotated[str, typer.Argument(help="Prompt id")],
    version: Annotated[str, typer.Argument(help="Version to make current")],
    db: DbOption = None,
) -> None:
    """Point a prompt back at an earlier version."""
    with _session(db) as session:
        prompt = PromptService(session).rollback(prompt_id, version)
        rprint(f"[green]✓[/green] [bold]{prompt.name}[/bold] is now at v{prompt.current_version}")


# ------------------------------------------------------------------
# tag
# ------------------------------------------------------------------


@app.command()
def tag(
    prompt_id: Annotated[str, typer.Argument(help="Prompt id")],
    add_tags: Annotated[
        list[str] | None,
        typer.Option("--add", "-a", help="Tags to add (repeatable)."),
    ] = None,
    remove_tags: Annotated[
        list[str] | None,
        typer.Option("--remove", "-r", help="Tags to remove (repeatable)."),
    ] = None,
    db: DbOption = None,
) -> None:
    """Add or remove tags on a prompt."""
    if not add_tags and not remove_tags:
        rprint("[red]Error:[/red] Provide --add and/or --remove.")
        raise typer.Exit(1) from None

    with _session(db) as session:
        service = PromptService(session)
        for t in add_tags or []:
            service.add_tag(prompt_id, t)
        for t in remove_tags or []:
            service.remove_tag(prompt_id, t)
        rprint(f"[green]✓[/green] Updated tags on [bold]{prompt_id}[/bold]")


# ------------------------------------------------------------------
# record-call
# ------------------------------------------------------------------


@app.command("record-call")
def record_call(
    prompt_id: Annotated[str, typer.Argument(help="Prompt id")],
    version: Annotated[str, typer.Argument(help="Version that was called")],
    input_text: Annotated[str, typer.Option("--input", "-i", help="Full LLM input")],
    output_text: Annotated[str, typer.Option("--output", "-o", help="Full LLM output")] = "",
    cost: Annotated[float, typer.Option("--cost")] = 0.0,
    tokens: Annotated[int, typer.Option("--tokens")] = 0,
    error: Annotated[str | None, typer.Option("--error", help="Marks the call as failed.")] = None,
    db: DbOption = None,
) -> None:
    """Record an LLM call against a prompt version."""
    with _session(db) as session:
        PromptService(session).log_llm_call(
            prompt_id,
            version,
            input=input_text,
            output=output_text,
            cost=cost,
            token_usage=tokens,
            success=error is None,
            error=error,
        )
        rprint(f"[green]✓[/green] Recorded call on [bold]{prompt_id}[/bold] v{version}")


# ------------------------------------------------------------------
# export
# ------------------------------------------------------------------


@app.command()
def export(
    prompt_id: Annotated[str, typer.Argument(help="Prompt id")],
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write to file instead of stdout."),
    ] = None,
    db: DbOption = None,
) -> None:
    """Export a prompt and all its versions as JSON."""
    with _session(db) as session:
        service = PromptService(session)
        if output:
            service.export_to_file(prompt_id, output)
            rprint(f"[green]✓[/green] Exported [bold]{prompt_id}[/bold] to {output}")
        else:
            typer.echo(service.export_prompt(prompt_id))


@app.command("export-all")
def export_all(
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write to file instead of stdout."),
    ] = None,
    db: DbOption = None,
) -> None:
    """Export every prompt as one JSON bundle."""
    with _session(db) as session:
        service = PromptService(session)
        if output:
            service.export_all_to_file(output)
            rprint(f"[green]✓[/green] Exported all prompts to {output}")
        else:
            typer.echo(service.export_all())


@app.command("import")
def import_bundle(
    path: Annotated[Path, typer.Argument(help="Bundle written by export-all.")],
    db: DbOption = None,
) -> None:
    """Import prompts from a JSON bundle. Existing ids are skipped."""
    if not path.is_file():
        rprint(f"[red]Error:[/red] File not found: {path}")
        raise typer.Exit(1)
    with _session(db) as session:
        imported = PromptService(session).import_prompts(path)
        rprint(f"[green]✓[/green] Imported {len(imported)} prompt(s)")
        for prompt in imported:
            console.print(f"  {prompt.id}  {prompt.name}", markup=False, highlight=False)


# ------------------------------------------------------------------
# delete
# ------------------------------------------------------------------


@app.command()
def delete(
    prompt_id: Annotated[str, typer.Argument(help="Prompt id")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation.")] = False,
    db: DbOption = None,
) -> None:
    """Delete a prompt and all its versions."""
    if not yes:
        confirm = typer.confirm(f"Delete prompt '{prompt_id}' and all its versions?")
        if not confirm:
            rprint("[dim]Aborted.[/dim]")
            raise typer.Exit(0)

    with _session(db) as session:
        deleted = PromptService(session).delete_prompt(prompt_id)
    if not deleted:
        rprint(f"[red]Error:[/red] Prompt '{prompt_id}' not found.")
        raise typer.Exit(1)
    rprint(f"[green]✓[/green] Deleted [bold]{prompt_id}[/bold]")


# ------------------------------------------------------------------
# collab
# ------------------------------------------------------------------


@collab_app.command("vote")
def collab_vote(
    prompt_id: Annotated[str, typer.Argument(help="Prompt id")],
    user_id: Annotated[str, typer.Argument(help="Voting user")],
    vote_type: Annotated[str, typer.Argument(help="up or down")],
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Vote a prompt up or down. Voting again replaces the earlier vote."""
    with _session(db) as session:
        service = CollaborationService(session)
        vote = service.vote(prompt_id, user_id, vote_type)
        summary = service.vote_summary(prompt_id)
        if json_output:
            _echo_json(
                {
                    "vote": VoteOut.model_validate(vote).model_dump(mode="json"),
                    "summary": summary.model_dump(),
                }
            )
        else:
            rprint(
                f"[green]✓[/green] {user_id} voted {vote.vote_type} "
                f"(score {summary.score:+d}: {summary.up_votes} up, {summary.down_votes} down)"
            )


@collab_app.command("votes")
def collab_votes(
    prompt_id: Annotated[str, typer.Argument(help="Prompt id")],
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List votes on a prompt."""
    with _session(db) as session:
        votes = CollaborationService(session).list_votes(prompt_id)
        if json_output:
            _echo_json([VoteOut.model_validate(v).model_dump(mode="json") for v in votes])
            return
        if not votes:
            rprint("[dim]No votes.[/dim]")
            return
        for v in votes:
            typer.echo(f"{v.user_id}\t{v.vote_type}")


@collab_app.command("comment")
def collab_comment(
    prompt_id: Annotated[str, typer.Argument(help="Prompt id")],
    user_id: Annotated[str, typer.Argument(help="Commenting user")],
    content: Annotated[str, typer.Argument(help="Comment text")],
    parent: Annotated[str | None, typer.Option("--parent", "-p", help="Reply to comment id")] = None,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Comment on a prompt, optionally as a reply."""
    with _session(db) as session:
        comment = CollaborationService(session).add_comment(prompt_id, user_id, content, parent)
        if json_output:
            _echo_json(CommentOut.model_validate(comment).model_dump(mode="json"))
        else:
            rprint(f"[green]✓[/green] Comment {comment.id} added")


@collab_app.command("comments")
def collab_comments(
    prompt_id: Annotated[str, typer.Argument(help="Prompt id")],
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List comments on a prompt, replies nested one level."""
    with _session(db) as session:
        comments = CollaborationService(session).list_comments(prompt_id)
        if json_output:
            _echo_json([CommentOut.model_validate(c).model_dump(mode="json") for c in comments])
            return
        if not comments:
            rprint("[dim]No comments.[/dim]")
            return
        ids = {c.id for c in comments}
        for c in comments:
            if c.parent_comment_id in ids:
                continue
            _print_comment(c)
            for reply in comments:
                if reply.parent_comment_id == c.id:
                    _print_comment(reply, indent="    ↳ ")


def _print_comment(comment: Any, indent: str = "") -> None:
    console.print(
        f"{indent}[cyan]{comment.user_id}[/cyan] [dim]{_fmt_time(comment.created_at)} "
        f"({comment.id})[/dim]"
    )
    console.print(f"{indent}{comment.content}", markup=False, highlight=False)
    for a in comment.annotations:
        console.print(
            f"{indent}  [{a.annotation_type}] {a.start_position}-{a.end_position}: {a.content}",
            markup=False,
            highlight=False,
        )


@collab_app.command("replies")
def collab_replies(
    comment_id: Annotated[str, typer.Argument(help="Comment id")],
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List direct replies to a comment."""
    with _session(db) as session:
        replies = CollaborationService(session).list_replies(comment_id)
        if json_output:
            _echo_json([CommentOut.model_validate(c).model_dump(mode="json") for c in replies])
            return
        for c in replies:
            _print_comment(c)


@collab_app.command("annotate")
def collab_annotate(
    comment_id: Annotated[str, typer.Argument(help="Comment id")],
    start: Annotated[int, typer.Argument(help="Start offset")],
    end: Annotated[int, typer.Argument(help="End offset")],
    annotation_type: Annotated[str, typer.Argument(help="suggestion, highlight or concern")],
    content: Annotated[str, typer.Option("--content", "-c")] = "",
    db: DbOption = None,
) -> None:
    """Annotate a character span of a comment."""
    with _session(db) as session:
        annotation = CollaborationService(session).add_annotation(
            comment_id, start, end, annotation_type, content
        )
        rprint(f"[green]✓[/green] Annotation {annotation.id} added")


@collab_app.command("summary")
def collab_summary(
    prompt_id: Annotated[str, typer.Argument(help="Prompt id")],
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Votes, comment and annotation counts and libraries for a prompt."""
    with _session(db) as session:
        summary = CollaborationService(session).collaboration_summary(prompt_id)
        if json_output:
            _echo_json(summary.model_dump())
            return
        votes = summary.vote_summary
        rprint(f"Score: [bold]{votes.score:+d}[/bold] ({votes.up_votes} up, {votes.down_votes} down)")
        rprint(f"Comments: {summary.comment_count}  Annotations: {summary.annotation_count}")
        rprint(f"Libraries: {', '.join(summary.shared_libraries) or 'none'}")


# ------------------------------------------------------------------
# library
# ------------------------------------------------------------------


@library_app.command("create")
def library_create(
    name: Annotated[str, typer.Argument(help="Library name")],
    owner_id: Annotated[str, typer.Argument(help="Owning user")],
    description: Annotated[str, typer.Option("--description", "-d")] = "",
    public: Annotated[bool, typer.Option("--public", help="Readable by everyone.")] = False,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Create a shared prompt library."""
    with _session(db) as session:
        library = CollaborationService(session).create_library(name, description, owner_id, public)
        if json_output:
            _echo_json(LibraryOut.model_validate(library).model_dump(mode="json"))
        else:
            rprint(f"[green]✓[/green] Created library [bold]{name}[/bold] (id: {library.id})")


@library_app.command("show")
def library_show(
    library_id: Annotated[str, typer.Argument(help="Library id")],
    db: DbOption = None,
) -> None:
    """Show a library as JSON."""
    with _session(db) as session:
        library = CollaborationService(session).get_library(library_id)
        if library is None:
            rprint(f"[red]Error:[/red] Library '{library_id}' not found.")
            raise typer.Exit(1)
        _echo_json(LibraryOut.model_validate(library).model_dump(mode="json"))


@library_app.command("list")
def library_list(
    user_id: Annotated[str | None, typer.Option("--user", "-u", help="Viewing user")] = None,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List libraries visible to a user."""
    with _session(db) as session:
        libraries = CollaborationService(session).get_shared_libraries(user_id)
        if json_output:
            _echo_json([LibraryOut.model_validate(lib).model_dump(mode="json") for lib in libraries])
            return
        table = Table(title="Shared libraries")
        table.add_column("Id", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Owner")
        table.add_column("Public")
        table.add_column("Prompts", justify="right")
        for lib in libraries:
            table.add_row(lib.id, lib.name, lib.owner_id, "yes" if lib.is_public else "no", str(len(lib.prompts)))
        console.print(table)


def _report_access(allowed: bool, message: str) -> None:
    if not allowed:
        rprint("[red]Error:[/red] Access denied or library not found.")
        raise typer.Exit(1)
    rprint(f"[green]✓[/green] {message}")


@library_app.command("add-prompt")
def library_add_prompt(
    library_id: Annotated[str, typer.Argument(help="Library id")],
    prompt_id: Annotated[str, typer.Argument(help="Prompt id")],
    user_id: Annotated[str, typer.Argument(help="Acting user")],
    db: DbOption = None,
) -> None:
    """Add a prompt to a library (owner or collaborator only)."""
    with _session(db) as session:
        allowed = CollaborationService(session).add_prompt_to_library(library_id, prompt_id, user_id)
    _report_access(allowed, f"Added {prompt_id} to {library_id}")


@library_app.command("add-collaborator")
def library_add_collaborator(
    library_id: Annotated[str, typer.Argument(help="Library id")],
    collaborator_id: Annotated[str, typer.Argument(help="User to add")],
    owner_id: Annotated[str, typer.Argument(help="Acting owner")],
    db: DbOption = None,
) -> None:
    """Add a collaborator to a library (owner only)."""
    with _session(db) as session:
        allowed = CollaborationService(session).add_collaborator(
            library_id, collaborator_id, owner_id
        )
    _report_access(allowed, f"Added collaborator {collaborator_id} to {library_id}")


@library_app.command("prompts")
def library_prompts(
    library_id: Annotated[str, typer.Argument(help="Library id")],
    user_id: Annotated[str | None, typer.Option("--user", "-u", help="Viewing user")] = None,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List prompt ids in a library."""
    with _session(db) as session:
        prompt_ids = CollaborationService(session).get_library_prompts(library_id, user_id)
    if json_output:
        _echo_json(prompt_ids)
    elif not prompt_ids:
        rprint("[dim]No prompts visible.[/dim]")
    else:
        for pid in prompt_ids:
            typer.echo(pid)


# ------------------------------------------------------------------
# eval
# ------------------------------------------------------------------

EvalTypeOption = Annotated[
    str,
    typer.Option("--type", "-t", help="performance, cost, bias or quality"),
]


@eval_app.command("run")
def eval_run(
    prompt_id: Annotated[str, typer.Argument(help="Prompt id")],
    evaluation_type: EvalTypeOption = "performance",
    version: Annotated[str | None, typer.Option("--version", "-v")] = None,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Evaluate a prompt version and record the score."""
    with _session(db) as session:
        prompts = PromptService(session)
        prompt = prompts.get_prompt(prompt_id)
        ver = prompts.get_version(prompt_id, version) if version else prompt.current
        evaluation = EvaluationService(session).evaluate(
            prompt_id, ver.version, ver.content, {"evaluation_type": evaluation_type}
        )
        if json_output:
            _echo_json(EvaluationOut.from_model(evaluation).model_dump(mode="json"))
        else:
            rprint(
                f"[green]✓[/green] {evaluation.evaluation_type} score for v{ver.version}: "
                f"[bold]{evaluation.score:.3f}[/bold]"
            )


@eval_app.command("list")
def eval_list(
    prompt_id: Annotated[str, typer.Argument(help="Prompt id")],
    version: Annotated[str | None, typer.Option("--version", "-v")] = None,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List recorded evaluations."""
    with _session(db) as session:
        evaluations = EvaluationService(session).list_evaluations(prompt_id, version)
        if json_output:
            _echo_json([EvaluationOut.from_model(e).model_dump(mode="json") for e in evaluations])
            return
        table = Table(title=f"Evaluations of {prompt_id}")
        table.add_column("Version", style="cyan")
        table.add_column("Type")
        table.add_column("Score", justify="right")
        table.add_column("When", style="dim")
        for e in evaluations:
            table.add_row(e.version, e.evaluation_type, f"{e.score:.3f}", _fmt_time(e.created_at))
        console.print(table)


@eval_app.command("batch")
def eval_batch(
    prompt_ids: Annotated[
        list[str] | None, typer.Argument(help="Prompt ids (default: every prompt)")
    ] = None,
    evaluation_type: EvalTypeOption = "performance",
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Evaluate the current version of several prompts at once."""
    with _session(db) as session:
        prompts = PromptService(session)
        targets = (
            [prompts.get_prompt(pid) for pid in prompt_ids] if prompt_ids else prompts.list_prompts()
        )
        items = [
            {"id": p.id, "version": p.current_version, "content": p.current.content}
            for p in targets
        ]
        result = EvaluationService(session).batch_evaluate(items, evaluation_type)
    if json_output:
        _echo_json(result.model_dump(mode="json"))
        return
    table = Table(title=f"Batch {evaluation_type} evaluation")
    table.add_column("Prompt", style="cyan")
    table.add_column("Version")
    table.add_column("Score", justify="right")
    for r in result.results:
        table.add_row(r.prompt_id, r.version, f"{r.score:.3f}")
    console.print(table)
    rprint(
        f"{result.summary.total} evaluated, "
        f"average [bold]{result.summary.average_score:.3f}[/bold]"
    )


@eval_app.command("compare")
def eval_compare(
    prompt_id: Annotated[str, typer.Argument(help="Prompt id")],
    v1: Annotated[str, typer.Argument(help="First version")],
    v2: Annotated[str, typer.Argument(help="Second version")],
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Compare average recorded scores of two versions."""
    with _session(db) as session:
        result = EvaluationService(session).compare_versions(prompt_id, v1, v2)
    if json_output:
        _echo_json(result.model_dump())
        return
    rprint(f"v{v1}: {result.version1_score:.3f}  v{v2}: {result.version2_score:.3f}")
    rprint(f"Winner: [bold]v{result.winner}[/bold]")
    for note in result.improvements:
        rprint(f"  • {note}")


@eval_app.command("cost")
def eval_cost(
    prompt_id: Annotated[str, typer.Argument(help="Prompt id")],
    calls: Annotated[int, typer.Option("--calls")],
    input_tokens: Annotated[int, typer.Option("--input-tokens")],
    output_tokens: Annotated[int, typer.Option("--output-tokens")],
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Compute and store cost analytics for a prompt."""
    with _session(db) as session:
        analytics = EvaluationService(session).cost_analytics(
            prompt_id, calls, input_tokens, output_tokens
        )
    if json_output:
        _echo_json(analytics.model_dump(mode="json"))
        return
    rprint(
        f"Total cost: [bold]{analytics.total_cost:.4f}[/bold] over {analytics.total_calls} calls "
        f"({analytics.average_cost_per_call:.6f} per call)"
    )


@eval_app.command("cost-report")
def eval_cost_report(
    prompt_id: Annotated[str, typer.Argument(help="Prompt id")],
    db: DbOption = None,
) -> None:
    """Show the last stored cost analytics for a prompt as JSON."""
    with _session(db) as session:
        analytics = EvaluationService(session).get_cost_analytics(prompt_id)
    if analytics is None:
        rprint(f"[dim]No cost analytics recorded for {prompt_id}.[/dim]")
        raise typer.Exit(1)
    _echo_json(analytics.model_dump(mode="json"))


@eval_app.command("ab")
def eval_ab(
    prompt_id: Annotated[str, typer.Argument(help="Prompt id")],
    version_a: Annotated[str, typer.Argument(help="Version A")],
    version_b: Annotated[str, typer.Argument(help="Version B")],
    evaluation_type: EvalTypeOption = "performance",
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Run an A/B test between two versions."""
    with _session(db) as session:
        result = EvaluationService(session).ab_test(
            prompt_id, version_a, version_b, {"evaluation_type": evaluation_type}
        )
    if json_output:
        _echo_json(result.model_dump())
        return
    rprint(result.recommendation)


# ------------------------------------------------------------------
# ethics
# ------------------------------------------------------------------


@ethics_app.command("bias")
def ethics_bias(
    content: ContentOption = None,
    file: FileOption = None,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Detect biased language in text."""
    text = _read_content(content, file)
    with _session(db) as session:
        result = ResponsibleAIService(session).detect_bias(text or "")
    if json_output:
        _echo_json(result.model_dump(mode="json"))
        return
    rprint(f"Overall bias score: [bold]{result.overall_score:.2f}[/bold]")
    for category in result.categories:
        rprint(f"  {category.type}: {category.score:.2f}")
    for suggestion in result.suggestions:
        rprint(f"  • {suggestion}")


@ethics_app.command("validate")
def ethics_validate(
    content: ContentOption = None,
    file: FileOption = None,
    template_id: Annotated[str | None, typer.Option("--template")] = None,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Validate text against ethical rules and an optional template."""
    text = _read_content(content, file)
    with _session(db) as session:
        report = ResponsibleAIService(session).validate_ethics(text or "", template_id)
    if json_output:
        _echo_json(report.model_dump())
        return
    verdict = "[green]ethical[/green]" if report.is_ethical else "[red]needs revision[/red]"
    rprint(f"Score {report.score:.2f}: {verdict}")
    for violation in report.violations:
        rprint(f"  [red]✗[/red] {violation}")
    for rec in report.recommendations:
        rprint(f"  • {rec}")


@ethics_app.command("analyze")
def ethics_analyze(
    prompt_id: Annotated[str, typer.Argument(help="Prompt id")],
    template_id: Annotated[str | None, typer.Option("--template")] = None,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Run bias and ethics analysis on a prompt's current content."""
    with _session(db) as session:
        content = PromptService(session).get_current_version(prompt_id).content
        analysis = ResponsibleAIService(session).analyze_prompt(content, template_id)
    if json_output:
        _echo_json(analysis.model_dump(mode="json"))
        return
    overall = analysis.overall_assessment
    rprint(f"Overall score [bold]{overall.score:.2f}[/bold]: {overall.summary}")


@ethics_app.command("templates")
def ethics_templates(
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List ethical prompt templates."""
    with _session(db) as session:
        templates = [
            EthicalTemplateOut.model_validate(t)
            for t in ResponsibleAIService(session).list_templates()
        ]
    if json_output:
        _echo_json([t.model_dump() for t in templates])
        return
    table = Table(title="Ethical templates")
    table.add_column("Id", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Tags")
    for t in templates:
        table.add_row(t.id, t.name, ", ".join(t.tags))
    console.print(table)


@ethics_app.command("template")
def ethics_template(
    template_id: Annotated[str, typer.Argument(help="Template id")],
    db: DbOption = None,
) -> None:
    """Show an ethical template as JSON."""
    with _session(db) as session:
        template = ResponsibleAIService(session).get_template(template_id)
        if template is None:
            rprint(f"[red]Error:[/red] Ethical template '{template_id}' not found.")
            raise typer.Exit(1)
        _echo_json(EthicalTemplateOut.model_validate(template).model_dump())


@ethics_app.command("add-template")
def ethics_add_template(
    name: Annotated[str, typer.Argument(help="Template name")],
    template: Annotated[str, typer.Option("--template", help="Body with {{placeholders}}")],
    description: Annotated[str, typer.Option("--description", "-d")],
    guideline: Annotated[
        list[str] | None,
        typer.Option("--guideline", "-g", help="Ethical guideline (repeatable)."),
    ] = None,
    tag: Annotated[list[str] | None, typer.Option("--tag", "-t")] = None,
    db: DbOption = None,
) -> None:
    """Create an ethical prompt template."""
    with _session(db) as session:
        row = ResponsibleAIService(session).create_template(
            name, description, template, guideline or [], tag or []
        )
        rprint(f"[green]✓[/green] Created template [bold]{row.name}[/bold] (id: {row.id})")


@ethics_app.command("apply")
def ethics_apply(
    template_id: Annotated[str, typer.Argument(help="Template id")],
    var: Annotated[
        list[str] | None,
        typer.Option("--var", help="Placeholder value as key=value (repeatable)."),
    ] = None,
    db: DbOption = None,
) -> None:
    """Fill in an ethical template's placeholders."""
    variables: dict[str, str] = {}
    for item in var or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            rprint(f"[red]Error:[/red] Expected key=value, got {item!r}.")
            raise typer.Exit(1) from None
        variables[key] = value
    with _session(db) as session:
        text = ResponsibleAIService(session).apply_template(template_id, variables)
    typer.echo(text)
