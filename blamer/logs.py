"""
File: Global classes that provide logging services to all modules

Copyright (C) Microsoft Corporation
SPDX-License-Identifier: MIT
"""
from __future__ import annotations

import sys
from datetime import datetime
from typing import TYPE_CHECKING, NoReturn, Dict, List, Any, Final
from traceback import print_stack

from .config import CONF
from .interfaces import AnalysisObserver
from .stats import AnalysisStats

if TYPE_CHECKING:
    from .crash_components.crash_trace import CrashFrame, CrashTrace
    from .crash_components.instruction import Instruction
    from .interfaces import BlameReport
    from .target_desc import DestSourcePair
    from .taint import TaintInfo, TaintList

RED = '\033[33;31m'
GREEN = '\033[33;32m'
YELLOW = '\033[33;33m'
BLUE = '\033[33;34m'
PURPLE = '\033[33;35m'
CYAN = '\033[33;36m'
GRAY = '\033[33;37m'
COL_RESET = "\033[0m"

STAT = AnalysisStats()


# ==================================================================================================
# Private: Logging configuration
# ==================================================================================================
class _LoggingConfig:  # pylint: disable=too-few-public-methods  # because this is a data class
    """
    A global object responsible for keeping track of how stuff should be printed.
    This object is shared among all modules (via Borg pattern)
    and is used to determine the logging behavior.
    """
    _borg_shared_state: Dict[Any, Any] = {}

    # info modes
    info: bool = False
    stat: bool = False
    debug: bool = False

    # debugging specific modules
    dbg_taint: bool = False
    dbg_frames: bool = False

    _all_modes: List[str] = ["info", "stat", "dbg_taint", "dbg_frames"]

    def __init__(self) -> None:
        self.__dict__ = self._borg_shared_state
        if not self._borg_shared_state:
            self.update_logging_modes()

    def update_logging_modes(self) -> None:
        """
        Function that adjust the logging configuration after
        a change has been made to the CONF object """
        # Check that all entries in the config a valid
        for mode in CONF.logging_modes:
            if not mode:  # skip empty values
                continue
            if mode not in self._all_modes:
                error(f"Unknown value '{mode}' of config variable 'logging_modes'")

        # Set the logging modes
        self.debug = False
        for mode in self._all_modes:
            val = mode in CONF.logging_modes
            setattr(self, mode, val)
            if "dbg" in mode:
                self.debug |= val

        # Check if Python is not running in optimized mode if debugging is required
        # (otherwise, the debug messages won't be printed)
        if not __debug__ and self.debug:
            warning(
                "", "Current value of `logging_modes` requires debugging mode!\n"
                "Remove '-O' from python arguments")


# ==================================================================================================
# Public interface to logging configuration
# ==================================================================================================
# create an initial instance of the logging configuration
# to be used by functions in this module
_LOG_CONF = _LoggingConfig()


def update_logging_after_config_change() -> None:
    """ Update the logging configuration after a change has been made to the CONF object """
    _LOG_CONF.update_logging_modes()


# ==================================================================================================
# Public: Simple logging functions
# ==================================================================================================
def error(msg: str, print_tb: bool = False) -> NoReturn:
    """ Print an error message and exit the program """
    if print_tb:
        print("Encountered an unrecoverable error\nTraceback:")
        print_stack()
        print("\n")

    if CONF.color:
        print(f"{RED}ERROR:{COL_RESET} {msg}")
    else:
        print(f"ERROR: {msg}")
    sys.exit(1)


def warning(src: str, msg: str) -> None:
    """ Print a warning message """
    if CONF.color:
        print(f"{RED}WARNING:{COL_RESET} [{src}] {msg}")
    else:
        print(f"WARNING: [{src}] {msg}")


def inform(src: str, msg: str, end: str = "\n") -> None:
    """ Print a general information message """
    if _LOG_CONF.info:
        print(f"INFO: [{src}] {msg}", end=end, flush=True)


def dbg(src: str, msg: str) -> None:
    """ Print a debug message """
    if not __debug__:
        return
    if _LOG_CONF.debug:
        print(f"DBG: [{src}] {msg}")


# ==================================================================================================
# Public: Module-specific logging
# ==================================================================================================
class TaintLogger(AnalysisObserver):
    """
    A class that provides logging services for the taint analysis.
    The blame report is always printed; the rest depends on the logging modes:
      - info: progress of the analysis over the frames
      - stat: statistics at the end of the analysis
      - dbg_frames: decisions taken on frame and instruction level
      - dbg_taint: content of the taint list and data flow of every analysed instruction
    """

    start_time: datetime
    _conf: Final[_LoggingConfig]

    def __init__(self) -> None:
        self._conf = _LoggingConfig()
        self.start_time = datetime.today()

    # ----------------------------------------------------------------------------------------------
    # Trace level
    def start(self, trace: CrashTrace) -> None:
        self.start_time = datetime.today()
        name = f" {trace.name}" if trace.name else ""
        inform("analysis", f"Analysing crash trace{name} with {len(trace)} frame(s)")

    def finish(self, found: bool) -> None:
        if found:
            inform("analysis", "Taint Analysis done")
        else:
            inform("analysis", "No root cause found")
        if not self._conf.info:
            return
        if self._conf.stat:
            print("================================ Statistics ================================"
                  "===\n")
            print(STAT)
        duration = (datetime.today() - self.start_time).total_seconds()
        print(f"Duration: {duration:.3f}")

    def frame_skipped(self, frame: CrashFrame) -> None:
        if not __debug__:
            return
        if self._conf.dbg_frames:
            dbg("analysis", f"### Skip: {frame.function_name}")

    def frame_missing(self, frame: CrashFrame) -> None:
        inform("analysis", f"Frame {frame.function_name} is missing; stopping the analysis")

    def frame_started(self, frame: CrashFrame, taints: TaintList) -> None:
        inform("analysis", f"### Frame: {frame.function_name}")
        self._dump_taint_list(taints)

    def frame_concluded(self, frame: CrashFrame, taints: TaintList) -> None:
        if not __debug__:
            return
        if self._conf.dbg_frames:
            dbg("analysis", f"Frame {frame.function_name} concluded; "
                f"{len(taints)} taint(s) left")

    # ----------------------------------------------------------------------------------------------
    # Frame level
    def instruction(self, inst: Instruction) -> None:
        if not __debug__:
            return
        if not self._conf.dbg_frames:
            return
        inst_str = str(inst)
        if CONF.color:
            inst_str = GREEN + inst_str + COL_RESET
        print(f"  {inst_str}")

    def frame_boundary(self, frame: CrashFrame, inst: Instruction) -> None:
        if not __debug__:
            return
        if self._conf.dbg_frames:
            dbg("analysis", f"Reached the end of frame {frame.function_name} at `{inst}`")

    def no_effect(self, inst: Instruction, is_crash_start: bool) -> None:
        if not __debug__:
            return
        if not self._conf.dbg_frames:
            return
        if is_crash_start:
            dbg("analysis", "Crash instruction doesn't have blame operands")
        else:
            dbg("analysis", f"Haven't found dest && source for `{inst}`")

    def dest_src(self, pair: DestSourcePair) -> None:
        if not __debug__:
            return
        if not self._conf.dbg_taint:
            return
        if pair.destination is not None:
            print(f"    dest: {pair.destination.value}")
            if pair.dest_offset:
                print(f"    dest offset: {pair.dest_offset}")
        if pair.source is not None:
            print(f"    src: {pair.source.value}")
            if pair.src_offset:
                print(f"    src offset: {pair.src_offset}")
        if pair.source2 is not None:
            print(f"    src2: {pair.source2.value}")
            if pair.src2_offset:
                print(f"    src2 offset: {pair.src2_offset}")

    # ----------------------------------------------------------------------------------------------
    # Taint level
    def seeded(self, taints: TaintList) -> None:
        self._dump_taint_list(taints)

    def transferred(self, dest: TaintInfo, src: TaintInfo, taints: TaintList) -> None:
        if not __debug__:
            return
        if not self._conf.dbg_taint:
            return
        msg = f"    taint: {dest} -> {src}"
        if CONF.color:
            msg = CYAN + msg + COL_RESET
        print(msg)
        self._dump_taint_list(taints)

    def terminated_found(self, report: BlameReport, taints: TaintList) -> None:
        if __debug__ and self._conf.dbg_taint:
            print("\n******** Blame MI is here")
        print_blame_report(report)
        self._dump_taint_list(taints)

    def terminated_empty(self, frame: CrashFrame) -> None:
        if not __debug__:
            return
        if self._conf.dbg_taint:
            dbg("analysis", "No taint to propagate")

    def _dump_taint_list(self, taints: TaintList) -> None:
        if not __debug__:
            return
        if not self._conf.dbg_taint:
            return
        if taints.is_empty():
            print("    Taint List is empty")
            return
        print("    -----Taint List Begin------")
        for taint in taints:
            print(f"    {taint}")
        print("    ------Taint List End-------")


def print_blame_report(report: BlameReport) -> None:
    """ Print the location of the blame instruction """
    function_name = report.function_name
    if CONF.color:
        function_name = YELLOW + function_name + COL_RESET
    print(f"\nBlame Function is {function_name}")
    if report.debug_loc is not None:
        print(f"At Line Number {report.debug_loc.line}, from file {report.debug_loc.filename}")
    else:
        warning("analysis", "Please compile with -g to get full line info.")
        print(f"Blame instruction is {report.instruction}")
