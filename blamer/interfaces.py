"""
File: Interfaces shared between the analysis engine and its consumers

Copyright (C) Microsoft Corporation
SPDX-License-Identifier: MIT
"""
from __future__ import annotations

from abc import ABC
from typing import NamedTuple, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .crash_components.crash_trace import CrashFrame, CrashTrace
    from .crash_components.instruction import DebugLoc, Instruction
    from .target_desc import DestSourcePair
    from .taint import TaintInfo, TaintList


class BlameReport(NamedTuple):
    """ Result of a successful search: the instruction that introduced the bad value """

    function_name: str
    instruction: str
    debug_loc: Optional[DebugLoc]


class AnalysisObserver(ABC):
    """
    Receiver of the events produced by the taint analysis.

    The analysis calls these hooks at every decision point; it never prints anything by itself.
    All hooks are no-ops by default, so that an observer needs to implement only the events
    it is interested in.
    """

    # ----------------------------------------------------------------------------------------------
    # Trace-level events
    def start(self, trace: CrashTrace) -> None:
        """ The analysis of a crash trace begins """

    def finish(self, found: bool) -> None:
        """ The analysis of a crash trace is over """

    def frame_skipped(self, frame: CrashFrame) -> None:
        """ A leading process-startup frame was skipped """

    def frame_missing(self, frame: CrashFrame) -> None:
        """ A frame without lifted instructions was reached; the analysis stops here """

    def frame_started(self, frame: CrashFrame, taints: TaintList) -> None:
        """ The backward scan of a frame begins """

    def frame_concluded(self, frame: CrashFrame, taints: TaintList) -> None:
        """ The scan of a frame concluded successfully """

    # ----------------------------------------------------------------------------------------------
    # Frame-level events
    def instruction(self, inst: Instruction) -> None:
        """ An instruction is about to be analysed """

    def frame_boundary(self, frame: CrashFrame, inst: Instruction) -> None:
        """ A push/pop instruction was reached; the scan of the frame stops """

    def no_effect(self, inst: Instruction, is_crash_start: bool) -> None:
        """ The data flow effect of the instruction is not modeled; it is skipped """

    def dest_src(self, pair: DestSourcePair) -> None:
        """ The data flow effect of the current instruction was extracted """

    # ----------------------------------------------------------------------------------------------
    # Taint events
    def seeded(self, taints: TaintList) -> None:
        """ The taint list was initialized from the crash instruction """

    def transferred(self, dest: TaintInfo, src: TaintInfo, taints: TaintList) -> None:
        """ The taint moved from the destination of an instruction to its source """

    def terminated_found(self, report: BlameReport, taints: TaintList) -> None:
        """ A tainted location was written with a constant: this is the blame instruction """

    def terminated_empty(self, frame: CrashFrame) -> None:
        """ There is no taint left to propagate """
