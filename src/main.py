"""
Recipe engine — CLI entrypoint.

Usage:
    python -m src.main --help
    python -m src.main info boost
    python -m src.main plan boost --with-icu --without-static
    python -m src.main build boost --universal --source-dir ./boost_1_54_0

Option flags for the recipe follow the recipe name.
"""

from __future__ import annotations

import contextlib
import json
import os
import signal
import sys
import threading
from pathlib import Path

import click

from src import __version__
from src.core.errors import RecipeEngineError
from src.core.observability.logging_config import setup_logging

# Let recipe flags (--with-x, --universal, ...) through to the option registry
_RECIPE_ARGS = {"ignore_unknown_options": True}


@click.group()
@click.version_option(version=__version__, prog_name="recipe")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to engine.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Recipe engine — resolve, configure and build package recipes."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("RCP_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("RCP_LOG_FILE"),
        log_file_level=os.environ.get("RCP_LOG_FILE_LEVEL"),
        quiet_build_output=not debug,
    )


# ── Helpers ─────────────────────────────────────────────────────


def _fail(error: RecipeEngineError) -> None:
    click.secho(f"❌ {error}", fg="red", err=True)
    sys.exit(error.EXIT_CODE)


@contextlib.contextmanager
def _cancel_on_sigterm(cancel: threading.Event):
    """Set ``cancel`` on SIGTERM so the running step's process group is killed.

    Ctrl-C is handled by the runner itself (KeyboardInterrupt).
    """
    if threading.current_thread() is not threading.main_thread():
        yield cancel
        return
    previous = signal.signal(signal.SIGTERM, lambda signum, frame: cancel.set())
    try:
        yield cancel
    finally:
        signal.signal(signal.SIGTERM, previous)


def _load_config(ctx: click.Context):
    from src.core.config.loader import load_config

    if "config" not in ctx.obj:
        ctx.obj["config"] = load_config(ctx.obj.get("config_path"))
    return ctx.obj["config"]


def _make_host(config):
    """Host facts for this machine."""
    from src.core.services.recipe_build.detection.host import LocalHostFacts

    return LocalHostFacts.from_config(config)


def _repository(config):
    from src.core.config.recipe_loader import RecipeRepository

    return RecipeRepository(config.recipes_dir)


def _plan(ctx: click.Context, recipe_name: str, options: tuple[str, ...]):
    from src.core.services.recipe_build.orchestration.pipeline import plan_build

    config = _load_config(ctx)
    repo = _repository(config)
    recipe = repo.load(recipe_name)
    return plan_build(
        recipe,
        list(options),
        _make_host(config),
        lookup=repo.get,
        jobs=config.jobs,
        extra_env=config.env,
    )


# ── Commands ────────────────────────────────────────────────────


@cli.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_recipes(ctx: click.Context, as_json: bool) -> None:
    """List recipes in the recipes directory."""
    from src.core.config.recipe_loader import discover_recipes

    try:
        config = _load_config(ctx)
    except RecipeEngineError as e:
        _fail(e)
        return

    found = discover_recipes(config.recipes_dir)
    if as_json:
        click.echo(json.dumps({name: str(path) for name, path in found.items()}, indent=2))
        return

    if not found:
        click.echo(f"No recipes in {config.recipes_dir}")
        return
    for name in found:
        click.echo(f"  • {name}")


@cli.command()
@click.argument("recipe_name", metavar="RECIPE")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def info(ctx: click.Context, recipe_name: str, as_json: bool) -> None:
    """Show a recipe's metadata, options and dependencies."""
    try:
        recipe = _repository(_load_config(ctx)).load(recipe_name)
    except RecipeEngineError as e:
        _fail(e)
        return

    if as_json:
        click.echo(json.dumps({
            "name": recipe.name,
            "version": recipe.version,
            "homepage": recipe.homepage,
            "url": recipe.url,
            "options": [o.model_dump() for o in recipe.options],
            "dependencies": [
                {"name": d.name, "level": d.level, "variants": list(d.variants)}
                for d in recipe.dependencies
            ],
        }, indent=2))
        return

    click.secho(f"\n📦 {recipe.name} {recipe.version}", fg="cyan", bold=True)
    if recipe.homepage:
        click.echo(f"   {recipe.homepage}")
    if recipe.url:
        click.echo(f"   {recipe.url}")

    if recipe.options:
        click.echo()
        click.secho("   Options:", fg="white", bold=True)
        for opt in recipe.options:
            if opt.kind == "valued":
                flag = f"--{opt.key}=<value>"
            elif opt.default is True:
                flag = f"--without-{opt.key}"
            else:
                flag = f"--with-{opt.key}"
            click.echo(f"     {flag}")
            if opt.description:
                click.echo(f"         {opt.description}")

    if recipe.dependencies:
        click.echo()
        click.secho("   Dependencies:", fg="white", bold=True)
        for dep in recipe.dependencies:
            variants = f" [{', '.join(dep.variants)}]" if dep.variants else ""
            level = f" ({dep.level})" if dep.level != "required" else ""
            click.echo(f"     • {dep.name}{variants}{level}")

    click.echo()


@cli.command(context_settings=_RECIPE_ARGS)
@click.argument("recipe_name", metavar="RECIPE")
@click.argument("options", nargs=-1, type=click.UNPROCESSED)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def plan(ctx: click.Context, recipe_name: str, options: tuple[str, ...], as_json: bool) -> None:
    """Dry run: show the resolved options, dependencies and command lines."""
    try:
        planned = _plan(ctx, recipe_name, options)
    except RecipeEngineError as e:
        _fail(e)
        return

    if as_json:
        click.echo(json.dumps(planned.to_dict(), indent=2))
        return

    env = planned.environment
    click.secho(f"\n📋 {planned.recipe.name} {planned.recipe.version}", fg="cyan", bold=True)
    click.echo(f"   Prefix:   {env.prefix}")
    compiler = env.toolchain.compiler.name
    if env.toolchain.standard:
        compiler += f" ({env.toolchain.standard})"
    click.echo(f"   Compiler: {compiler}")

    changed = planned.selection.changed_flags()
    click.echo(f"   Options:  {' '.join(changed) if changed else '(defaults)'}")

    if len(planned.plan):
        click.echo()
        click.secho("   Dependencies:", fg="white", bold=True)
        for entry in planned.plan.entries:
            variants = f" [{', '.join(entry.variants)}]" if entry.variants else ""
            click.echo(f"     • {entry.name}{variants}")

    if env.excluded:
        click.echo()
        click.secho("   Excluded:", fg="yellow", bold=True)
        for component in env.excluded:
            reason = env.exclusion_reasons.get(component)
            click.echo(f"     • {component}" + (f" — {reason}" if reason else ""))

    click.echo()
    click.secho("   Steps:", fg="white", bold=True)
    for vector in planned.vectors:
        click.echo(f"     {vector.step}: {vector}")
    click.echo()


@cli.command(context_settings=_RECIPE_ARGS)
@click.argument("recipe_name", metavar="RECIPE")
@click.argument("options", nargs=-1, type=click.UNPROCESSED)
@click.option(
    "--source-dir",
    "-s",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    help="Unpacked source tree to build in (default: cwd).",
)
@click.option("--timeout", type=float, default=None, help="Per-step timeout in seconds.")
@click.option("--no-receipt", is_flag=True, help="Don't write INSTALL_RECEIPT.json.")
@click.pass_context
def build(
    ctx: click.Context,
    recipe_name: str,
    options: tuple[str, ...],
    source_dir: Path,
    timeout: float | None,
    no_receipt: bool,
) -> None:
    """Build and install a recipe from an unpacked source tree."""
    from src.core.services.recipe_build.execution.process_driver import ProcessDriver
    from src.core.services.recipe_build.orchestration.pipeline import build_recipe

    quiet = ctx.obj.get("quiet", False)
    try:
        config = _load_config(ctx)
        repo = _repository(config)
        recipe = repo.load(recipe_name)
        with _cancel_on_sigterm(threading.Event()) as cancel:
            driver = ProcessDriver(
                logs_dir=config.logs_dir,
                timeout=timeout or config.timeout,
                cancel=cancel,
                keep_user_paths=config.keep_user_paths,
            )
            result = build_recipe(
                recipe,
                list(options),
                _make_host(config),
                source_dir=source_dir,
                driver=driver,
                lookup=repo.get,
                jobs=config.jobs,
                extra_env=config.env,
                write_receipt=not no_receipt,
            )
    except RecipeEngineError as e:
        _fail(e)
        return

    env = result.plan.environment
    if not quiet:
        for step in result.steps:
            click.echo(f"   ✓ {step.step} ({step.duration_ms} ms)")
    click.secho(f"✅ {recipe.name} {recipe.version} installed in {env.prefix}", fg="green", bold=True)

    if result.caveats:
        click.echo()
        click.secho("⚠️  Caveats:", fg="yellow")
        for caveat in result.caveats:
            click.echo()
            for line in caveat.splitlines():
                click.echo(f"   {line}")
        click.echo()


if __name__ == "__main__":
    cli()
