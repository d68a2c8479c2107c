"""
docmark command line.

Commands:
- check:      Compile documents and report diagnostics
- tree:       Print the expanded tree of a document
- components: List the components a directory provides
"""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from docmark import __version__
from docmark.core.compiler import Compiler
from docmark.core.errors import Diagnostic, render_diagnostic
from docmark.core.ir.components import ComponentSource
from docmark.core.ir.nodes import dump_tree
from docmark.core.manifest import CONFIG_FILENAME, DocmarkConfig, load_config

app = typer.Typer(
    help="docmark - compile component-extended documentation markup",
    no_args_is_help=True,
)

console = Console()

COMPONENT_SUFFIX = ".md"


def version_callback(value: bool) -> None:
    if value:
        console.print(f"docmark {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """docmark CLI main callback for global options."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        force=True,
    )


def discover_sources(directory: Path) -> list[ComponentSource]:
    """
    Read every ``*.md`` file below ``directory`` as a component source.

    Registration keys are paths relative to ``directory``, so a project
    root holding ``_components/`` and ``_topics/`` yields keys such as
    ``_components/card.md``.
    """
    sources = []
    for path in sorted(directory.rglob(f"*{COMPONENT_SUFFIX}")):
        key = path.relative_to(directory).as_posix()
        sources.append(ComponentSource(key=key, text=path.read_text(encoding="utf-8")))
    return sources


def parse_preferences(prefs: list[str]) -> dict[str, str]:
    """``["plan=pro"]`` → ``{"plan": "pro"}``."""
    parsed: dict[str, str] = {}
    for pref in prefs:
        key, sep, value = pref.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"Expected KEY=VALUE, got '{pref}'", param_hint="--pref")
        parsed[key.strip()] = value
    return parsed


def _load_settings(config_path: Path | None) -> DocmarkConfig:
    path = config_path if config_path is not None else Path.cwd() / CONFIG_FILENAME
    try:
        return load_config(path)
    except ValueError as e:
        console.print(f"[red]Invalid configuration: {escape(str(e))}[/red]")
        raise typer.Exit(code=2)


def _build_compiler(
    components: Path | None, config_path: Path | None, prefs: list[str]
) -> Compiler:
    settings = _load_settings(config_path)
    preferences = parse_preferences(prefs)
    if preferences:
        merged = {**settings.user_preferences, **preferences}
        settings.context = {**settings.context, "user_preferences": merged}
    sources = discover_sources(components) if components is not None else []
    return Compiler.from_config(settings, sources)


def _print_load_errors(compiler: Compiler) -> None:
    for diagnostic in compiler.registry.load_errors:
        _print_diagnostic(diagnostic, compiler.source_for(diagnostic.origin))


def _print_diagnostic(diagnostic: Diagnostic, source: str | None) -> None:
    console.print(
        render_diagnostic(diagnostic, source), markup=False, highlight=False, soft_wrap=True
    )


ComponentsOption = typer.Option(
    None,
    "--components",
    "-c",
    help="Directory holding component sources (e.g. containing _components/)",
    exists=True,
    file_okay=False,
)
ConfigOption = typer.Option(None, "--config", help=f"Path to {CONFIG_FILENAME}")
PrefOption = typer.Option([], "--pref", "-p", help="User preference KEY=VALUE (repeatable)")


@app.command()
def check(
    documents: list[Path] = typer.Argument(
        ..., help="Documents to compile", exists=True, dir_okay=False
    ),
    components: Path | None = ComponentsOption,
    config: Path | None = ConfigOption,
    pref: list[str] = PrefOption,
) -> None:
    """Compile documents and report diagnostics."""
    compiler = _build_compiler(components, config, pref)
    _print_load_errors(compiler)

    failed = 0
    for path in documents:
        text = path.read_text(encoding="utf-8")
        result = compiler.compile(text, origin=str(path))
        if result.ok:
            console.print(f"[green]✓[/green] {escape(str(path))}")
            continue
        failed += 1
        console.print(f"[red]✗[/red] {escape(str(path))}")
        console.print(
            compiler.render_diagnostics(result, text), markup=False, highlight=False, soft_wrap=True
        )

    if failed or compiler.registry.load_errors:
        console.print(
            f"[red]{failed} of {len(documents)} document(s) failed, "
            f"{len(compiler.registry.load_errors)} component error(s)[/red]"
        )
        raise typer.Exit(code=1)
    console.print(f"[green]All {len(documents)} document(s) compiled[/green]")


@app.command()
def tree(
    document: Path = typer.Argument(
        ..., help="Document to compile", exists=True, dir_okay=False
    ),
    components: Path | None = ComponentsOption,
    config: Path | None = ConfigOption,
    pref: list[str] = PrefOption,
) -> None:
    """Print the expanded tree of a document."""
    compiler = _build_compiler(components, config, pref)
    text = document.read_text(encoding="utf-8")
    result = compiler.compile(text, origin=str(document))
    if not result.ok:
        console.print(
            compiler.render_diagnostics(result, text), markup=False, highlight=False, soft_wrap=True
        )
        raise typer.Exit(code=1)
    console.print(dump_tree(result.nodes), markup=False, highlight=False, soft_wrap=True, end="")


@app.command()
def components(
    components: Path | None = ComponentsOption,
    config: Path | None = ConfigOption,
) -> None:
    """List the components available to documents."""
    compiler = _build_compiler(components, config, [])
    registry = compiler.registry

    table = Table(title="Components")
    table.add_column("Name", style="cyan")
    table.add_column("Source")
    table.add_column("Attributes")
    for name in registry.names():
        definition = registry.resolve(name)
        assert definition is not None
        attrs = ", ".join(
            f"{a.title}{'*' if a.required else ''}" for a in definition.attributes
        )
        table.add_row(name, definition.key, attrs or "-")
    console.print(table)

    if registry.load_errors:
        _print_load_errors(compiler)
        raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
