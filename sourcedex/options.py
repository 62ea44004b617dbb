"""Command-line options for sourcedex, declared as click parameters.

A configuration file named with -R must be loaded before any other flag is
applied, so that every other flag on the same command line can override
what the file supplies. click gives that ordering directly:

    eager parameters  -R loads the first named file into the ParseState
                      kept on ctx.obj; -O, -l, -t and -D record their
                      maintenance action and end option processing
    the rest          validated by click, then folded by apply_pass over a
                      copy of the loaded configuration; only flags that
                      were actually given on the command line are applied

Neither step mutates the configuration the run started from. A failed
parse leaves the caller's configuration untouched.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import click
from click.core import ParameterSource

from sourcedex.config_runtime import (
    RuntimeConfiguration,
    load_configuration,
    normalize_url_prefix,
)
from sourcedex.exceptions import ConfigurationError, UsageError

CONTEXT_SETTINGS = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 100,
}


@dataclass
class OptionSet:
    """Everything on the command line that is not configuration state."""

    data_root_arg: str | None = None
    sub_files: list[str] = field(default_factory=list)
    config_file: str | None = None
    write_config: str | None = None
    config_hosts: list[str] = field(default_factory=list)
    add_projects: bool = False
    default_project: str | None = None
    search_repositories: bool = False
    refresh_history: bool = False
    run_index: bool = True
    maintenance: tuple[str, str] | None = None


@dataclass
class ParseState:
    """What the eager parameters leave on ctx.obj for apply_pass."""

    initial: RuntimeConfiguration | None = None
    loaded: RuntimeConfiguration | None = None
    config_file: str | None = None
    maintenance: tuple[str, str] | None = None


class StopOptionProcessing(Exception):
    """Raised by a maintenance flag once its action is recorded."""


class SourcedexCommand(click.Command):
    """Command that treats a maintenance flag as the end of its options."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        try:
            return super().parse_args(ctx, args)
        except StopOptionProcessing:
            ctx.args = []
            return []


def _load_configuration_file(ctx: click.Context, param: click.Parameter, value: tuple[str, ...]):
    if not value or ctx.resilient_parsing:
        return value
    state = ctx.ensure_object(ParseState)
    # Only the first -R counts
    try:
        state.loaded = load_configuration(Path(value[0]))
    except ConfigurationError as e:
        raise click.FileError(value[0], hint=str(e)) from e
    state.config_file = value[0]
    return value


def _maintenance(action: str) -> Callable[[click.Context, click.Parameter, Any], Any]:
    def callback(ctx: click.Context, param: click.Parameter, value: str | None):
        if value is None or ctx.resilient_parsing:
            return value
        ctx.ensure_object(ParseState).maintenance = (action, value)
        raise StopOptionProcessing()
    return callback


def _quick_context_scan(ctx: click.Context, param: click.Parameter, value: str | None) -> bool | None:
    if value is None:
        return None
    if value[:1] == "+":
        return True
    if value[:1] == "-":
        return False
    raise click.BadParameter("You should pass either '+' or '-' as argument to -Q")


_PARAMETERS = [
    click.option("-R", "config_file", multiple=True, is_eager=True, metavar="FILE",
                 callback=_load_configuration_file, expose_value=False,
                 help="Read configuration from FILE; other flags override it."),
    click.option("-O", "optimize", metavar="DATA_ROOT", is_eager=True, expose_value=False,
                 callback=_maintenance("optimize"), help="Optimize the index and exit."),
    click.option("-l", "list_files", metavar="DATA_ROOT", is_eager=True, expose_value=False,
                 callback=_maintenance("list"), help="List all files in the index and exit."),
    click.option("-t", "tokens", metavar="DATA_ROOT", is_eager=True, expose_value=False,
                 callback=_maintenance("tokens"),
                 help="List tokens occurring more than 5 times and exit."),
    click.option("-D", "dump", metavar="DATA_ROOT", is_eager=True, expose_value=False,
                 callback=_maintenance("dump"),
                 help="Dump terms found in exactly one file and exit."),
    click.option("-v/-q", "verbose", default=False, help="Run verbosely / quietly."),
    click.option("-e", "economical", is_flag=True,
                 help="Economical: do not generate xref pages."),
    click.option("-c", "ctags", metavar="PATH", help="Path to ctags."),
    click.option("-W", "write_config", metavar="FILE",
                 help="Write the current running configuration to FILE."),
    click.option("-U", "config_hosts", multiple=True, metavar="HOST:PORT",
                 help="Send configuration to HOST:PORT (repeatable)."),
    click.option("-P", "add_projects", is_flag=True,
                 help="Generate a project for each top-level directory."),
    click.option("-p", "default_project", metavar="PATH",
                 help="Use the project with this path as the default project."),
    click.option("-Q", "quick_context_scan", metavar="+|-", callback=_quick_context_scan,
                 help="Turn quick context scan on or off (only the first 32k of a file)."),
    click.option("-n", "no_index", is_flag=True, help="Do not generate indexes."),
    click.option("-H", "refresh_history", is_flag=True,
                 help="Refresh history caches of all known repositories."),
    click.option("-w", "webapp_root", metavar="ROOT",
                 help="Root URL of the web application, default is /source."),
    click.option("-i", "ignore", multiple=True, metavar="PATTERN",
                 help="Ignore named files or directories (glob, repeatable)."),
    click.option("-m", "word_limit", type=click.IntRange(min=1), metavar="LIMIT",
                 help="Maximum words in a file to index."),
    click.option("-S", "search_repositories", is_flag=True,
                 help="Search for repositories under SRC_ROOT."),
    click.option("-s", "source_root", metavar="SRC_ROOT",
                 help="Root directory of the source tree (default: last used)."),
    click.argument("data_root", required=False),
    click.argument("subtrees", nargs=-1),
]


def sourcedex_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Attach every sourcedex flag and positional argument to a command."""
    for decorator in reversed(_PARAMETERS):
        func = decorator(func)
    return func


@click.command("sourcedex", cls=SourcedexCommand, context_settings=CONTEXT_SETTINGS)
@sourcedex_options
def option_parser(**params: Any) -> None:
    """Parse-only command; never invoked, see resolve_options()."""


def apply_pass(ctx: click.Context) -> tuple[OptionSet, RuntimeConfiguration]:
    """Fold the parsed parameters of ctx over a copy of the loaded configuration.

    A recorded maintenance action short-circuits the fold: nothing but -R
    placed before it has been applied and positional arguments are ignored.
    """
    state = ctx.ensure_object(ParseState)
    if state.loaded is not None:
        base = state.loaded
    elif state.initial is not None:
        base = state.initial
    else:
        base = RuntimeConfiguration()
    config = base.copy()
    options = OptionSet(config_file=state.config_file)

    if state.maintenance is not None:
        options.maintenance = state.maintenance
        return options, config

    params = ctx.params

    def given(name: str) -> bool:
        return ctx.get_parameter_source(name) is ParameterSource.COMMANDLINE

    if given("verbose"):
        config.verbose = params["verbose"]
    if given("economical"):
        config.generate_html = False
    if given("ctags"):
        config.ctags = params["ctags"]
    if given("quick_context_scan"):
        config.quick_context_scan = params["quick_context_scan"]
    if given("webapp_root"):
        config.url_prefix = normalize_url_prefix(params["webapp_root"])
    if given("word_limit"):
        config.index_word_limit = params["word_limit"]
    if given("source_root"):
        config.source_root = Path(params["source_root"])
    config.ignore_patterns.update(params["ignore"])

    options.write_config = params["write_config"]
    options.config_hosts = list(params["config_hosts"])
    options.add_projects = params["add_projects"]
    options.default_project = params["default_project"]
    options.run_index = not params["no_index"]
    options.refresh_history = params["refresh_history"]
    options.search_repositories = params["search_repositories"]
    options.data_root_arg = params["data_root"]
    options.sub_files = list(params["subtrees"])
    return options, config


def resolve_options(
    argv: list[str],
    initial: RuntimeConfiguration | None = None,
) -> tuple[OptionSet, RuntimeConfiguration]:
    """Resolve argv into an OptionSet and the run's RuntimeConfiguration.

    Raises:
        UsageError: For any malformed command line
        ConfigurationError: If a -R file cannot be loaded
    """
    try:
        with option_parser.make_context("sourcedex", list(argv), obj=ParseState(initial)) as ctx:
            return apply_pass(ctx)
    except click.FileError as e:
        raise ConfigurationError(e.format_message()) from e
    except click.UsageError as e:
        raise UsageError(e.format_message()) from e
