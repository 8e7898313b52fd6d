import logging
import sys

from rich.console import Console
from rich.markup import escape

from subrank.app import configure_logging, scan_project
from subrank.cli import parse_args, to_options
from subrank.constants import ExitCodes
from subrank.managers import ManagerError
from subrank.report import render_json, render_table


def main(argv=None) -> int:
    """ Entrypoint when is installed via pip """
    args = parse_args(argv)
    configure_logging(args.loglevel, args.logfile)
    options = to_options(args)

    try:
        report = scan_project(options)
    except ManagerError as e:
        logging.error(f"Fatal: {e}")
        Console(stderr=True).print(f"[bold red]Error:[/] {escape(str(e))}", highlight=False)
        return ExitCodes.FILE_ERROR.value

    if options.json:
        sys.stdout.write(render_json(report) + "\n")
    else:
        render_table(report)
    return ExitCodes.SUCCESS.value


# Development mode
if __name__ == "__main__":
    sys.exit(main())
