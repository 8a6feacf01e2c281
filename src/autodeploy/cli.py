"""Typer CLI entry point for autodeploy."""

import asyncio
import uuid
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from dotenv import load_dotenv

if TYPE_CHECKING:
    from autodeploy.agents.dockerfile_fixer import DockerfileFixerAgent
    from autodeploy.config import Settings
    from autodeploy.models.build import ProjectFile

load_dotenv()

app = typer.Typer(
    name="autodeploy",
    help="Build container images with automatic Dockerfile repair",
    no_args_is_help=True,
)


_config_option = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to configuration YAML file. Uses defaults and env vars if not provided.",
    exists=True,
)


def _load_settings(config: Path | None) -> "Settings":
    from autodeploy.config import Settings

    if config is not None:
        return Settings.from_yaml(config)
    return Settings.from_env()


def _build_generator(settings: "Settings") -> "DockerfileFixerAgent | None":
    """Return the fixer agent, or None when no LLM provider is configured."""
    from loguru import logger

    from autodeploy.agents.dockerfile_fixer import DockerfileFixerAgent
    from autodeploy.llm import create_llm

    try:
        llm = create_llm(settings)
    except ValueError as exc:
        logger.warning("Delegated fixes disabled: {error}", error=exc)
        return None
    return DockerfileFixerAgent(llm)


def _initial_definition(
    project_dir: Path,
    dockerfile: Path | None,
    generate: bool,
    files: "list[ProjectFile]",
    instruction: str | None,
    settings: "Settings",
) -> str:
    """Pick the first Dockerfile draft: explicit file, project file, or LLM."""
    if dockerfile is not None:
        return dockerfile.read_text(encoding="utf-8")
    project_dockerfile = project_dir / "Dockerfile"
    if project_dockerfile.is_file() and not generate:
        return project_dockerfile.read_text(encoding="utf-8")
    if not generate:
        raise FileNotFoundError(
            f"No Dockerfile in {project_dir}; pass --dockerfile or --generate"
        )

    from autodeploy.agents.dockerfile_writer import DockerfileWriterAgent
    from autodeploy.llm import create_llm

    writer = DockerfileWriterAgent(create_llm(settings))
    return asyncio.run(writer.write(files, instruction))


@app.command()
def build(
    project_dir: Path = typer.Argument(
        ...,
        help="Project directory used as the build context",
        exists=True,
        file_okay=False,
    ),
    dockerfile: Path = typer.Option(
        None,
        "--dockerfile",
        "-f",
        help="Initial Dockerfile (default: PROJECT_DIR/Dockerfile)",
        exists=True,
        dir_okay=False,
    ),
    tag: str = typer.Option(
        None, "--tag", "-t", help="Image tag (default: <user>/<folder>:latest)"
    ),
    instruction: str = typer.Option(
        None, "--instruction", "-i", help="Free-text instruction forwarded to the LLM"
    ),
    max_retries: int = typer.Option(
        None, "--max-retries", "-n", min=1, help="Maximum build attempts"
    ),
    config: Path = _config_option,
    output: Path = typer.Option(
        None,
        "--output",
        "-o",
        help="Where to write the session JSON (default: <output_dir>/<session>/session.json)",
    ),
    generate: bool = typer.Option(
        False, "--generate", "-g", help="Draft the initial Dockerfile with the LLM"
    ),
) -> None:
    """Build PROJECT_DIR, repairing the Dockerfile between attempts."""
    from autodeploy.display.error_display import ErrorDisplay
    from autodeploy.display.session_display import SessionDisplay
    from autodeploy.docker.engine import DockerEngine
    from autodeploy.docker.invoker import BuildInvoker
    from autodeploy.docker.status import DockerStatusChecker, installation_instructions
    from autodeploy.pipeline.controller import BuildRetryController
    from autodeploy.pipeline.intake import load_project
    from autodeploy.pipeline.logging import setup_logging
    from autodeploy.pipeline.staging import derive_image_tag

    display = SessionDisplay()
    error_display = ErrorDisplay(display.console)
    session_id = uuid.uuid4().hex[:12]
    engine = None

    try:
        settings = _load_settings(config)
        setup_logging(Path(settings.log_dir), session_id, console=display.console)

        files = load_project(project_dir)
        definition = _initial_definition(
            project_dir, dockerfile, generate, files, instruction, settings
        )
        image_tag = tag or derive_image_tag(
            str(project_dir.resolve()), settings.docker.default_user
        )

        docker_cfg = settings.docker
        engine = DockerEngine(timeout=docker_cfg.daemon_probe_timeout)
        controller = BuildRetryController(
            status_checker=DockerStatusChecker(
                engine,
                binary=docker_cfg.binary,
                version_timeout=docker_cfg.version_probe_timeout,
                daemon_timeout=docker_cfg.daemon_probe_timeout,
            ),
            invoker=BuildInvoker(
                binary=docker_cfg.binary,
                timeout=docker_cfg.build_timeout,
                extra_args=docker_cfg.extra_build_args,
            ),
            generator=_build_generator(settings),
            max_retries=max_retries or settings.build.max_retries,
            callback=display,
            staging_parent=Path(docker_cfg.staging_dir) if docker_cfg.staging_dir else None,
            staging_prefix=docker_cfg.staging_prefix,
            lint_before_build=settings.build.lint_before_build,
        )

        display.start()
        session = asyncio.run(
            controller.run(
                files,
                definition,
                image_tag,
                session_id=session_id,
                user_instruction=instruction,
            )
        )
        display.stop()
    except KeyboardInterrupt:
        display.stop()
        error_display.show_error(
            "build",
            "interrupted",
            "Build interrupted by user",
            "Re-run the same command to start a new session",
        )
        raise typer.Exit(code=130) from None
    except Exception as e:
        display.stop()
        source, error_class, message, suggestion = ErrorDisplay.format_error(e)
        error_display.show_error(source, error_class, message, suggestion)
        raise typer.Exit(code=1) from None
    finally:
        if engine is not None:
            engine.close()

    session_dir = Path(settings.output_dir) / session_id
    session_dir.mkdir(parents=True, exist_ok=True)
    session_path = output or session_dir / "session.json"
    session_path.parent.mkdir(parents=True, exist_ok=True)
    session.save(session_path)

    if session.succeeded:
        (session_dir / "Dockerfile").write_text(session.final_build_definition, encoding="utf-8")
        display.console.print(f"[green]Image built:[/green] {session.image_tag}")
        display.console.print(f"Session written to {session_path}")
        typer.echo(session.final_build_definition, nl=False)
        return

    error_display.show_session_failure(session)
    if session.preflight_errors:
        display.console.print("\n[bold]Install Docker:[/bold]")
        for step in installation_instructions():
            display.console.print(f"  - {step}")
    display.console.print(f"Session written to {session_path}")
    raise typer.Exit(code=1)


@app.command()
def check(
    config: Path = _config_option,
    test_build: bool = typer.Option(
        False, "--test-build", help="Also build a throwaway image to verify end to end"
    ),
) -> None:
    """Check that Docker is installed and its daemon reachable."""
    from rich.console import Console
    from rich.table import Table

    from autodeploy.docker.engine import DockerEngine
    from autodeploy.docker.status import DockerStatusChecker, installation_instructions

    settings = _load_settings(config)
    docker_cfg = settings.docker
    engine = DockerEngine(timeout=docker_cfg.daemon_probe_timeout)
    checker = DockerStatusChecker(
        engine,
        binary=docker_cfg.binary,
        version_timeout=docker_cfg.version_probe_timeout,
        daemon_timeout=docker_cfg.daemon_probe_timeout,
    )
    console = Console(stderr=True)

    try:
        status = asyncio.run(checker.check_status())
        probe = asyncio.run(checker.test_build()) if test_build and status.can_build else None
    finally:
        engine.close()

    table = Table(title="Docker Status", show_header=True, header_style="bold")
    table.add_column("Check", style="cyan")
    table.add_column("Result")

    def _mark(ok: bool) -> str:
        return "[green]yes[/green]" if ok else "[red]no[/red]"

    table.add_row("Installed", _mark(status.is_installed))
    table.add_row("Daemon running", _mark(status.is_running))
    table.add_row("Can build", _mark(status.can_build))
    table.add_row("Version", status.version or "-")
    if probe is not None:
        table.add_row("Test build", _mark(probe.success))
    console.print(table)

    if not status.can_build:
        console.print(f"[red]Error:[/red] {status.error}")
        console.print("\n[bold]Install Docker:[/bold]")
        for step in installation_instructions():
            console.print(f"  - {step}")
        raise typer.Exit(code=1)
    if probe is not None and not probe.success:
        console.print(f"[red]Test build failed:[/red] {probe.error}")
        raise typer.Exit(code=1)


@app.command()
def lint(
    dockerfile: Path = typer.Argument(
        ..., help="Dockerfile to check", exists=True, dir_okay=False
    ),
) -> None:
    """Run the static Dockerfile checks without building."""
    from rich.console import Console

    from autodeploy.display.error_display import ErrorDisplay
    from autodeploy.pipeline.definition_check import validate_definition

    console = Console(stderr=True)
    issues = validate_definition(dockerfile.read_text(encoding="utf-8"))
    if not issues:
        console.print(f"[green]No issues found in {dockerfile}[/green]")
        return

    ErrorDisplay(console).show_classified_errors(issues, title=f"Issues in {dockerfile}")
    raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
