"""
File: Function definitions for using Crash Blamer as command-line tool
(Note: the actual CLI is accessed via crash_blamer.py)

Copyright (C) Microsoft Corporation
SPDX-License-Identifier: MIT
"""

import os
from argparse import ArgumentParser
from typing import List, Optional

from .config import CONF
from .factory import get_target_desc, get_trace_loader, get_analysis
from .logs import update_logging_after_config_change, STAT


def main(argv: Optional[List[str]] = None) -> int:
    parser = ArgumentParser(add_help=False)
    subparsers = parser.add_subparsers(dest='subparser_name')
    subparsers.required = True

    # ==============================================================================================
    # Common arguments
    common_parser = ArgumentParser(add_help=False)
    common_parser.add_argument(
        "-c",
        "--config",
        type=str,
        required=False,
        help="Path to the configuration file (YAML) that will be used during the analysis.",
    )
    common_parser.add_argument(
        "-I",
        "--include-dir",
        type=str,
        default=".",
        required=False,
        help="Path to the directory containing files that are included by the main "
        " configuration file or by the crash trace.",
    )

    # ==============================================================================================
    # Analysis of a crash trace
    parser_analyse = subparsers.add_parser('analyse', add_help=True, parents=[common_parser])
    parser_analyse.add_argument(
        "-t",
        "--trace",
        type=str,
        required=True,
        help="Path to the crash trace (YAML) to be analysed.",
    )
    parser_analyse.add_argument(
        "--stop-policy",
        type=str,
        choices=["first_blame", "empty_taint"],
        required=False,
        help="Override the `stop_policy` configuration option.",
    )

    args = parser.parse_args(argv)

    # Update configuration
    if getattr(args, 'config', None):
        if not os.path.isfile(args.config):
            print("[ERROR]", f"The config file `{args.config}` does not exist")
            return 1
        CONF.load(args.config, args.include_dir)
    if getattr(args, 'stop_policy', None):
        CONF.safe_set("stop_policy", args.stop_policy)
    update_logging_after_config_change()

    # Check arguments
    if getattr(args, 'trace', None) and not os.path.isfile(args.trace):
        print("[ERROR]", f"The crash trace file `{args.trace}` does not exist")
        return 1

    # Analyse
    if args.subparser_name == 'analyse':
        target_desc = get_target_desc()
        trace = get_trace_loader(target_desc).load(args.trace, args.include_dir)
        analysis = get_analysis(target_desc)
        STAT.reset()
        found = analysis.run_on_trace(trace)
        return 0 if found else 1

    print("Error: unknown command")
    return 1
