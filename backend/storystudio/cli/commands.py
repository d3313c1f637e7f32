"""CLI commands for storystudio using Typer and Rich.

Every command works on a project JSON file (default: project.json):
- new: Create a project from story options
- show: Show the project and its scenes
- characters / analyze: Build the cast and its visual signatures
- script: Generate the scene script
- audio / images / video: Generate scene media (one scene or all)
- upload-image / export-wav: Move media in and out of the project
- archive-*: Save, list, load and delete archived projects
"""

import asyncio
import logging
import mimetypes
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from storystudio.db import async_session, init_database
from storystudio.db.archive import ArchiveError, ProjectArchive
from storystudio.orchestrator.pipeline import StudioPipeline
from storystudio.orchestrator.state import StudioSession
from storystudio.pipeline.batch import BatchReport
from storystudio.pipeline.story_setup import set_scene_image_upload
from storystudio.project_io import load_project_file, save_project_file
from storystudio.schemas.story import (
    Character,
    ImageStyleConfig,
    MediaSettings,
    Project,
    StoryConfig,
    VoiceConfig,
)
from storystudio.services.audio_codec import b64decode_chunked

app = typer.Typer(name="storystudio", help="AI story studio: script, narration and consistent scene images")
console = Console()

ProjectOption = typer.Option(Path("project.json"), "--project", "-p", help="Project JSON file")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load(path: Path) -> Project:
    if not path.exists():
        console.print(f"[red]Error:[/red] Project file not found: {path}")
        raise typer.Exit(code=1)
    try:
        return load_project_file(path)
    except ValueError as e:
        console.print(f"[red]Error:[/red] Cannot read {path}: {e}")
        raise typer.Exit(code=1)


def _scene_index(project: Project, scene: int) -> int:
    """Convert a 1-based scene number to an index, exiting if out of range."""
    total = len(project.output.scenes) if project.output else 0
    if not total:
        console.print("[red]Error:[/red] Generate a script first.")
        raise typer.Exit(code=1)
    if not 1 <= scene <= total:
        console.print(f"[red]Error:[/red] Scene must be between 1 and {total}")
        raise typer.Exit(code=1)
    return scene - 1


def _parse_character(text: str) -> Character:
    """Parse 'Name|role|visual signature' (role and signature optional)."""
    parts = [p.strip() for p in text.split("|", 2)]
    name = parts[0]
    role = parts[1] if len(parts) > 1 and parts[1] else "supporting"
    signature = parts[2] if len(parts) > 2 else ""
    return Character(name=name, role=role, visual_signature=signature)


def _print_report(report: BatchReport) -> None:
    for result in report.results:
        if result.ok:
            console.print(f"[green]✓[/green] Scene {result.index + 1}")
        else:
            console.print(f"[red]✗[/red] Scene {result.index + 1}: {result.error}")
    if report.abandoned:
        console.print("[yellow]Batch abandoned: project was reset[/yellow]")


def _exit_on_session_error(pipeline: StudioPipeline) -> None:
    if pipeline.session.error:
        console.print(f"[red]✗ {pipeline.session.error}[/red]")
        raise typer.Exit(code=1)


@app.command()
def new(
    premise: str = typer.Argument("", help="Story premise"),
    project_path: Path = ProjectOption,
    title: str = typer.Option("", "--title", "-t"),
    category: str = typer.Option("", "--category", "-c", help="Genre, e.g. mystery"),
    setting: str = typer.Option("", "--setting"),
    language: str = typer.Option("ar", "--language", "-l"),
    pacing: str = typer.Option("balanced", "--pacing"),
    plot_twist: str = typer.Option("mild", "--plot-twist"),
    scenes: int = typer.Option(3, "--scenes", "-n", help="Number of scenes (1-10)"),
    character_count: int = typer.Option(2, "--character-count", help="Cast size for auto-generation (1-5)"),
    character: Optional[List[str]] = typer.Option(
        None, "--character", help="'Name|role|visual signature', repeatable",
    ),
    voice: str = typer.Option("man_soft", "--voice", help="man_deep, man_soft, man_drama, woman or child"),
    tone: str = typer.Option("calm", "--tone"),
    accent: str = typer.Option("neutral", "--accent"),
    aspect_ratio: str = typer.Option("16:9", "--aspect-ratio", "-a"),
    art_style: str = typer.Option("Cinematic Realistic", "--art-style", "-s"),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="Per-project API key override"),
    suggest: bool = typer.Option(False, "--suggest", help="Fill premise and setting with AI ideas"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing project file"),
):
    """Create a new project file from story options."""
    if project_path.exists() and not force:
        console.print(f"[red]Error:[/red] {project_path} exists (use --force to overwrite)")
        raise typer.Exit(code=1)

    try:
        project = Project(
            title=title or None,
            config=StoryConfig(
                language=language,
                category=category,
                title=title,
                premise=premise,
                setting=setting,
                pacing=pacing,
                plot_twist=plot_twist,
                scene_count=scenes,
                character_count=character_count,
                characters=[_parse_character(c) for c in character or []],
            ),
            voice_config=VoiceConfig(voice_type=voice, tone=tone, accent=accent, language=language),
            media_settings=MediaSettings(aspect_ratio=aspect_ratio),
            image_style=ImageStyleConfig(art_style=art_style),
            api_key=api_key,
        )
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    if suggest:
        pipeline = StudioPipeline(StudioSession(project))
        with console.status("[bold green]Suggesting story ideas..."):
            asyncio.run(pipeline.suggest_ideas())
        project = pipeline.project

    save_project_file(project, project_path)
    console.print(f"[green]Created project:[/green] {project.id} -> {project_path}")


@app.command()
def show(project_path: Path = ProjectOption):
    """Show project settings, cast and scene media status."""
    project = _load(project_path)
    config = project.config
    info_lines = [
        f"[bold]ID:[/bold] {project.id}",
        f"[bold]Title:[/bold] {project.title or config.title or '-'}",
        f"[bold]Premise:[/bold] {config.premise or '-'}",
        f"[bold]Language:[/bold] {config.language}",
        f"[bold]Scenes:[/bold] {config.scene_count}",
        f"[bold]Style:[/bold] {project.image_style.art_style}, {project.image_style.lighting}",
        f"[bold]Aspect Ratio:[/bold] {project.media_settings.aspect_ratio}",
        f"[bold]Voice:[/bold] {project.voice_config.voice_type}",
    ]
    console.print(Panel("\n".join(info_lines), title="[bold]Project[/bold]", border_style="blue"))

    if config.characters:
        table = Table(title="Characters")
        table.add_column("ID", style="dim")
        table.add_column("Name")
        table.add_column("Role")
        table.add_column("Visual Signature")
        for c in config.characters:
            table.add_row(c.id, c.name, c.role, c.visual_signature or "[dim]-[/dim]")
        console.print(table)

    if project.output:
        table = Table(title=project.output.title)
        table.add_column("#", justify="right")
        table.add_column("Characters")
        table.add_column("Audio", justify="center")
        table.add_column("Image", justify="center")
        table.add_column("Video", justify="center")
        mark = lambda v: "[green]✓[/green]" if v else "[dim]-[/dim]"
        for s in project.output.scenes:
            table.add_row(
                str(s.scene_number), ", ".join(s.character_names),
                mark(s.audio_data), mark(s.image_url), mark(s.video_data),
            )
        console.print(table)


@app.command()
def characters(project_path: Path = ProjectOption):
    """Auto-generate the cast with detailed visual signatures."""
    project = _load(project_path)
    pipeline = StudioPipeline(StudioSession(project))
    try:
        with console.status("[bold green]Generating characters..."):
            asyncio.run(pipeline.auto_generate_characters())
    except Exception as e:
        console.print(f"[red]✗ Character generation failed:[/red] {e}")
        raise typer.Exit(code=1)
    save_project_file(pipeline.project, project_path)
    for c in pipeline.project.config.characters:
        console.print(f"[green]{c.name}[/green] ({c.role}) [dim]{c.id}[/dim]")


@app.command()
def analyze(
    character_id: str = typer.Argument(..., help="Character id (see 'show')"),
    image: Path = typer.Argument(..., exists=True, dir_okay=False, help="Reference photo"),
    project_path: Path = ProjectOption,
):
    """Describe a reference photo and use it as the character's signature."""
    project = _load(project_path)
    mime_type = mimetypes.guess_type(image.name)[0] or "image/jpeg"
    pipeline = StudioPipeline(StudioSession(project))
    try:
        with console.status("[bold green]Analyzing image..."):
            asyncio.run(pipeline.analyze_character(character_id, image.read_bytes(), mime_type))
    except KeyError:
        console.print(f"[red]Error:[/red] Unknown character id: {character_id}")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"[red]✗ Could not analyze image:[/red] {e}")
        raise typer.Exit(code=1)
    save_project_file(pipeline.project, project_path)
    console.print("[green]✓[/green] Visual signature updated")


@app.command()
def script(project_path: Path = ProjectOption):
    """Generate the scene script (replaces any existing script and media)."""
    project = _load(project_path)
    pipeline = StudioPipeline(StudioSession(project))
    try:
        with console.status("[bold green]Writing script..."):
            asyncio.run(pipeline.generate_script())
    except Exception as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)
    save_project_file(pipeline.project, project_path)
    output = pipeline.project.output
    console.print(f"[green]✓[/green] {output.title}: {len(output.scenes)} scenes")


def _run_media(kind: str, project_path: Path, scene: Optional[int]) -> None:
    project = _load(project_path)
    pipeline = StudioPipeline(StudioSession(project))

    if scene is not None:
        index = _scene_index(project, scene)
        single = {
            "audio": pipeline.generate_audio,
            "image": pipeline.generate_image,
            "video": pipeline.generate_video,
        }[kind]
        with console.status(f"[bold green]Scene {scene}: {kind}..."):
            asyncio.run(single(index))
        save_project_file(pipeline.project, project_path)
        _exit_on_session_error(pipeline)
        console.print(f"[green]✓[/green] Scene {scene} {kind} done")
        return

    if project.output is None:
        console.print("[red]Error:[/red] Generate a script first.")
        raise typer.Exit(code=1)
    batch = {
        "audio": pipeline.generate_all_audio,
        "image": pipeline.generate_all_images,
    }[kind]
    try:
        with console.status(f"[bold green]Generating {kind}...") as status:
            report = asyncio.run(batch(lambda msg: status.update(f"[bold green]{msg}")))
    finally:
        save_project_file(pipeline.project, project_path)
    _print_report(report)
    if report.failed:
        raise typer.Exit(code=1)


@app.command()
def audio(
    project_path: Path = ProjectOption,
    scene: Optional[int] = typer.Option(None, "--scene", help="Scene number (default: all)"),
):
    """Generate narration audio for one scene or all scenes."""
    _run_media("audio", project_path, scene)


@app.command()
def images(
    project_path: Path = ProjectOption,
    scene: Optional[int] = typer.Option(None, "--scene", help="Scene number (default: all)"),
):
    """Generate scene images with consistent characters."""
    _run_media("image", project_path, scene)


@app.command()
def video(
    scene: int = typer.Argument(..., help="Scene number"),
    project_path: Path = ProjectOption,
):
    """Animate one scene, seeded from its image."""
    _run_media("video", project_path, scene)


@app.command(name="upload-image")
def upload_image(
    scene: int = typer.Argument(..., help="Scene number"),
    image: Path = typer.Argument(..., exists=True, dir_okay=False),
    project_path: Path = ProjectOption,
):
    """Use your own image for a scene."""
    project = _load(project_path)
    index = _scene_index(project, scene)
    mime_type = mimetypes.guess_type(image.name)[0] or "image/png"
    project = set_scene_image_upload(project, index, image.read_bytes(), mime_type)
    save_project_file(project, project_path)
    console.print(f"[green]✓[/green] Scene {scene} image replaced")


@app.command(name="export-wav")
def export_wav(
    scene: int = typer.Argument(..., help="Scene number"),
    output: Path = typer.Argument(..., help="Destination .wav file"),
    project_path: Path = ProjectOption,
):
    """Write a scene's narration to a WAV file."""
    project = _load(project_path)
    index = _scene_index(project, scene)
    data = project.output.scenes[index].audio_data
    if not data:
        console.print(f"[red]Error:[/red] Scene {scene} has no audio yet")
        raise typer.Exit(code=1)
    output.write_bytes(b64decode_chunked(data))
    console.print(f"[green]✓[/green] {output}")


# ---------------------------------------------------------------------------
# Archive
# ---------------------------------------------------------------------------
async def _archive() -> ProjectArchive:
    await init_database()
    return ProjectArchive(async_session)


@app.command(name="archive-save")
def archive_save(project_path: Path = ProjectOption):
    """Save the project to the archive."""
    project = _load(project_path)

    async def _save():
        return await (await _archive()).save(project)

    try:
        saved = asyncio.run(_save())
    except ArchiveError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)
    save_project_file(saved, project_path)
    console.print(f"[green]✓[/green] Archived {saved.id} ({saved.title})")


@app.command(name="archive-list")
def archive_list():
    """List archived projects, newest first."""

    async def _list():
        return await (await _archive()).list()

    entries = asyncio.run(_list())
    if not entries:
        console.print("[yellow]No archived projects[/yellow]")
        return

    table = Table(title="Archived Projects")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Last Saved")
    for entry in entries:
        saved = datetime.fromtimestamp(entry.last_saved / 1000).strftime("%Y-%m-%d %H:%M")
        table.add_row(entry.id, entry.title, saved)
    console.print(table)


@app.command(name="archive-load")
def archive_load(
    project_id: str = typer.Argument(..., help="Archived project id"),
    project_path: Path = ProjectOption,
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing project file"),
):
    """Restore an archived project into a project file."""
    if project_path.exists() and not force:
        console.print(f"[red]Error:[/red] {project_path} exists (use --force to overwrite)")
        raise typer.Exit(code=1)

    async def _load_archived():
        return await (await _archive()).load(project_id)

    try:
        project = asyncio.run(_load_archived())
    except ArchiveError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)
    save_project_file(project, project_path)
    console.print(f"[green]✓[/green] Loaded {project.id} -> {project_path}")


@app.command(name="archive-delete")
def archive_delete(project_id: str = typer.Argument(..., help="Archived project id")):
    """Delete a project from the archive."""

    async def _delete():
        return await (await _archive()).delete(project_id)

    if not asyncio.run(_delete()):
        console.print(f"[red]Error:[/red] Project not found: {project_id}")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] Deleted {project_id}")
