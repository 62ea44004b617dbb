"""sourcedex CLI - main entry point.

Every flag is a click parameter declared in sourcedex.options; this module
adds the console script around them: version, the headless no-argument
case, and the mapping from a run's outcome to the process exit status.
"""

import sys

import click

from sourcedex import __version__
from sourcedex.exceptions import UsageError
from sourcedex.options import CONTEXT_SETTINGS, SourcedexCommand, apply_pass, sourcedex_options
from sourcedex.orchestrator import Orchestrator
from sourcedex.pipeline.ui import err_console, print_error
from sourcedex.utils.error_handler import handle_exceptions
from sourcedex.utils.exit_codes import ExitCodes
from sourcedex.utils.logging import logger


class HeadlessCommand(SourcedexCommand):
    """There is no graphical front end: no arguments prints the help and fails."""

    def parse_args(self, ctx, args):
        if not args and not ctx.resilient_parsing:
            print_error("No display available for the graphical user interface")
            err_console.print(ctx.get_help(), markup=False, highlight=False)
            ctx.exit(ExitCodes.FAILURE)
        return super().parse_args(ctx, args)


@click.command("sourcedex", cls=HeadlessCommand, context_settings=CONTEXT_SETTINGS)
@click.version_option(version=__version__, prog_name="sourcedex")
@sourcedex_options
@click.pass_context
@handle_exceptions
def cli(ctx, **params):
    """Build and maintain a source code index.

    DATA_ROOT is where the output of the indexer is stored. When subtrees
    are given, only those files or directories under SRC_ROOT are processed.

    \b
    QUICK START:
      sourcedex -s /usr/include /var/tmp/sourcedex_data rpc
      sourcedex -P -S -H -W /var/tmp/config.json -s /src /data
      sourcedex -l /data
    """
    options, config = apply_pass(ctx)

    try:
        outcome = Orchestrator().run(options, config)
    except UsageError as e:
        raise click.UsageError(str(e), ctx) from e
    except KeyboardInterrupt:
        err_console.print("\n[bold red][INFO] Run stopped by user.[/bold red]")
        sys.exit(ExitCodes.INTERRUPTED)

    if outcome.exit_code != ExitCodes.SUCCESS:
        logger.debug(f"Exit {outcome.exit_code}: {ExitCodes.get_description(outcome.exit_code)}")
        sys.exit(outcome.exit_code)


def main():
    """Main entry point for console script."""
    cli()


if __name__ == "__main__":
    main()
