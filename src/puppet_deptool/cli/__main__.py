"""
Main Entry Point for puppet-deptool CLI.

This module handles argument parsing and dispatches to specific command
handlers defined in `puppet_deptool.cli.commands`.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from puppet_deptool import __version__
from puppet_deptool.cli import commands
from puppet_deptool.config import DeptoolConfig
from puppet_deptool.errors import DeptoolError, UnsupportedShapeError
from puppet_deptool.utils.console import log_error, set_verbosity


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
  """Options shared by every command."""
  parser.add_argument(
    "-b",
    "--basedir",
    type=Path,
    default=None,
    help="Module or control repository to analyze (default: current directory)",
  )
  parser.add_argument(
    "-c",
    "--controldir",
    type=Path,
    default=None,
    help="Control repository whose environment the analyzed module is checked against",
  )
  parser.add_argument(
    "-p",
    "--modulepath",
    type=Path,
    action="append",
    default=None,
    help="Modulepath directory. Can be given multiple times (default: environment.conf or spec/fixtures/modules)",
  )
  parser.add_argument(
    "-P",
    "--use-env-modulepath",
    action="store_true",
    default=None,
    help="Append the environment.conf modulepath to directories given with --modulepath",
  )
  parser.add_argument(
    "-s",
    "--scan",
    dest="scan_modules",
    action="append",
    default=None,
    help="Scan only this module. Can be given multiple times (default: all modules)",
  )
  parser.add_argument("-k", "--known-warnings", type=Path, default=None, help="Known warnings file to load")
  parser.add_argument(
    "-f",
    "--state-file",
    type=Path,
    default=None,
    help="State file (default: <controlrepo>/.deptool/state)",
  )
  parser.add_argument("--builtins", type=Path, default=None, help="Alternative builtin catalog (JSON)")
  parser.add_argument("--tree-suffix", default=None, help="Suffix of syntax tree dumps (default: .json)")
  parser.add_argument(
    "-w",
    "--warnings-ok",
    action="store_true",
    default=None,
    help="Return 0 exit code even if there are warnings",
  )
  parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity (-vv for debug)")
  parser.add_argument("-q", "--quiet", action="store_true", help="Only log errors")


def _build_config(args: argparse.Namespace, use_state: Optional[bool] = None) -> DeptoolConfig:
  return DeptoolConfig.load(
    path=args.basedir,
    control_dir=args.controldir,
    modulepath=args.modulepath,
    use_env_modulepath=args.use_env_modulepath,
    modules=getattr(args, "modules", None),
    scan_modules=args.scan_modules,
    restrict_scan=getattr(args, "restrict", None),
    recurse=getattr(args, "recurse", None),
    extra_dependencies=getattr(args, "extra_dependencies", None),
    known_warnings_file=args.known_warnings,
    state_file=args.state_file,
    use_state=use_state,
    rescan_listed_modules=getattr(args, "rescan_listed_modules", None),
    builtins_file=args.builtins,
    tree_suffix=args.tree_suffix,
    warnings_ok=args.warnings_ok,
  )


def main(argv: Optional[List[str]] = None) -> int:
  """
  Main CLI entry point.

  Parses arguments via argparse and calls the appropriate handler function.

  Args:
      argv: Optional list of command line arguments (defaults to sys.argv).

  Returns:
      int: Exit code (0 clean, 1 fatal error, 2 warnings encountered).
  """
  parser = argparse.ArgumentParser(description="puppet-deptool: Puppet module dependency resolver")
  parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

  subparsers = parser.add_subparsers(dest="command", required=True)

  # --- Command: RESOLVE ---
  cmd_res = subparsers.add_parser("resolve", help="Scan modules and print resolved dependencies")
  _add_common_arguments(cmd_res)
  cmd_res.add_argument(
    "-m",
    "--module",
    dest="modules",
    action="append",
    default=None,
    help="Resolve dependencies of this module. Can be given multiple times (default: all modules)",
  )
  cmd_res.add_argument("-r", "--recurse", action="store_true", default=None, help="Resolve dependencies transitively")
  cmd_res.add_argument(
    "-R",
    "--restrict",
    action="store_true",
    default=None,
    help="Scan only the modules given with --module",
  )
  cmd_res.add_argument(
    "-x",
    "--extra-dependency",
    dest="extra_dependencies",
    action="append",
    default=None,
    help="Add a module name to the resolved list. Can be given multiple times",
  )
  cmd_res.add_argument(
    "-u",
    "--use-generated-state",
    action="store_true",
    help="Load the state file instead of scanning every module",
  )
  cmd_res.add_argument(
    "-S",
    "--rescan-listed-modules",
    action="store_true",
    default=None,
    help="Load the state file but rescan modules given with --scan. Implies --use-generated-state",
  )

  # --- Command: STATE ---
  cmd_state = subparsers.add_parser("state", help="Scan every module and write the state file")
  _add_common_arguments(cmd_state)

  # --- Command: KNOWN-WARNINGS ---
  cmd_known = subparsers.add_parser("known-warnings", help="Record every current warning as known")
  _add_common_arguments(cmd_known)
  cmd_known.add_argument("-o", "--out", type=Path, default=None, help="Output file (default: the known warnings file)")

  args = parser.parse_args(argv)
  set_verbosity(args.verbose, args.quiet)

  try:
    if args.command == "resolve":
      use_state = True if (args.use_generated_state or args.rescan_listed_modules or args.state_file) else None
      return commands.handle_resolve(_build_config(args, use_state))

    elif args.command == "state":
      return commands.handle_generate_state(_build_config(args))

    elif args.command == "known-warnings":
      return commands.handle_generate_known_warnings(_build_config(args), args.out)

  except UnsupportedShapeError as e:
    log_error(str(e))
    if e.excerpt:
      log_error(f"Offending source:\n{e.excerpt}")
    return 1
  except DeptoolError as e:
    log_error(str(e))
    return 1

  return 0


if __name__ == "__main__":
  sys.exit(main())
