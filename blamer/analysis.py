"""
File: Backward taint analysis that locates the instruction responsible for a crash

Copyright (C) Microsoft Corporation
SPDX-License-Identifier: MIT
"""
from __future__ import annotations

from enum import Enum
from typing import Optional, TYPE_CHECKING

from .config import CONF
from .crash_components.instruction import ImmediateOp
from .interfaces import BlameReport
from .logs import TaintLogger, STAT
from .taint import TaintInfo, TaintState, AddressResolver

if TYPE_CHECKING:
    from .crash_components.crash_trace import CrashFrame, CrashTrace
    from .crash_components.instruction import OperandRef
    from .interfaces import AnalysisObserver
    from .target_desc import TargetDesc, DestSourcePair


class PropagationResult(Enum):
    """ Outcome of propagating the taint through a single instruction """
    CONTINUE = 0
    """ The taint was propagated (or was not affected by the instruction) """
    FOUND = 1
    """ The instruction wrote a constant into a tainted location: it is the blame instruction """
    EMPTY = 2
    """ There is nothing left to propagate """


class TaintAnalysis:
    """
    Backward taint analysis over the frames of a crashed program.

    The analysis starts at the crash instruction of the innermost analysed frame,
    taints the locations that the crash instruction accessed, and walks the instructions
    backwards. Whenever an instruction writes a tainted location, the taint moves to
    the source of the write. The analysis terminates when a tainted location turns out
    to be written with a constant; that write is reported as the root cause of the crash.

    Limitations:
      - calls and branches are skipped, i.e., their effects are not modeled
      - only the first source of an instruction is followed after the initial seeding
      - memory addresses are computed only relative to the stack and frame pointers;
        indexed memory operands are never resolved and never match another location
      - xchg is modeled as a move from the second operand into the first one,
        so a taint on the second operand passes through it unchanged
    """

    target_desc: TargetDesc
    LOG: AnalysisObserver

    def __init__(self, target_desc: TargetDesc, observer: Optional[AnalysisObserver] = None):
        self.target_desc = target_desc
        self.LOG = observer if observer is not None else TaintLogger()
        self._resolver = AddressResolver(target_desc)
        self._stop_policy = CONF.get_stop_policy()
        self._startup_prefix = CONF.startup_frame_prefix if CONF.skip_startup_frames else ""

    # ----------------------------------------------------------------------------------------------
    # Trace level
    def run_on_trace(self, trace: CrashTrace, state: Optional[TaintState] = None) -> bool:
        """
        Run the analysis over the frames of a crash trace, from the crashing frame outwards.
        :param trace: the crash trace
        :param state: the taint state to use; a fresh one is created if not given
        :return: True if a root cause of the crash was found
        """
        if state is None:
            state = TaintState()
        self.LOG.start(trace)

        analysis_started = False
        result = False
        for frame in trace:
            # Skip the process startup frames (e.g., _start and __libc_start_main)
            # if the analysis hasn't started yet
            if not analysis_started and self._is_startup_frame(frame):
                STAT.frames_skipped += 1
                self.LOG.frame_skipped(frame)
                continue
            analysis_started = True

            # A frame that could not be lifted breaks the chain of frames
            if frame.is_missing():
                STAT.frames_missing += 1
                self.LOG.frame_missing(frame)
                break

            STAT.frames_scanned += 1
            self.LOG.frame_started(frame, state.taints)
            if not self.run_on_frame(frame, state):
                continue

            self.LOG.frame_concluded(frame, state.taints)
            result = True
            if state.taints.is_empty() or self._stop_on_blame(state):
                break

        self.LOG.finish(result)
        return result

    def _is_startup_frame(self, frame: CrashFrame) -> bool:
        return bool(self._startup_prefix) and frame.function_name.startswith(self._startup_prefix)

    def _stop_on_blame(self, state: TaintState) -> bool:
        return self._stop_policy == "first_blame" and bool(state.blames)

    # ----------------------------------------------------------------------------------------------
    # Frame level
    def run_on_frame(self, frame: CrashFrame, state: TaintState) -> bool:
        """
        Walk the instructions of a frame backwards, starting at its crash instruction.
        :param frame: the frame to be analysed; must not be missing
        :param state: the taint state; updated in place
        :return: True if the taint terminated in this frame
        """
        crash_sequence_started = False
        result = False

        for inst in frame.reversed_instructions():
            if inst.is_crash_start:
                crash_sequence_started = True
                self.LOG.instruction(inst)
                pair = self.target_desc.get_dest_and_src(inst)
                if pair is None:
                    STAT.instructions_skipped += 1
                    self.LOG.no_effect(inst, True)
                    continue
                self.LOG.dest_src(pair)
                outcome = self.start_taint(pair, state, frame)
            else:
                if not crash_sequence_started:
                    continue

                # The effects of calls and branches are not modeled
                if self.target_desc.is_call(inst) or self.target_desc.is_branch(inst):
                    STAT.instructions_skipped += 1
                    continue

                self.LOG.instruction(inst)

                # We reached the beginning of the frame
                if self.target_desc.is_push_pop(inst):
                    self.LOG.frame_boundary(frame, inst)
                    break

                pair = self.target_desc.get_dest_and_src(inst)
                if pair is None:
                    STAT.instructions_skipped += 1
                    self.LOG.no_effect(inst, False)
                    continue
                self.LOG.dest_src(pair)
                outcome = self.propagate_taint(pair, state, frame)

            STAT.instructions_analysed += 1
            if outcome == PropagationResult.CONTINUE:
                continue

            result = True
            if state.taints.is_empty() or \
                    (outcome == PropagationResult.FOUND and self._stop_on_blame(state)):
                return True

        return result

    # ----------------------------------------------------------------------------------------------
    # Instruction level
    def start_taint(self, pair: DestSourcePair, state: TaintState,
                    frame: CrashFrame) -> PropagationResult:
        """
        Initialize the taint list from the crash instruction.
        Seeding happens only once per trace; in the outer frames, the instruction
        at the crash point is treated as any other instruction.
        """
        if state.seeded:
            if pair.destination is None:
                return PropagationResult.CONTINUE
            return self.propagate_taint(pair, state, frame)

        assert state.taints.is_empty(), "Taint list is not empty before seeding"
        dest = self._make_taint(pair.destination, pair.dest_offset, frame)
        src = self._make_taint(pair.source, pair.src_offset, frame)
        src2 = self._make_taint(pair.source2, pair.src2_offset, frame)

        # A crash is typically a faulty dereference, hence we taint the destination
        # only if it is a memory operand
        if dest.op is not None and dest.offset is not None:
            state.taints.add(dest)
        state.taints.add(src)
        state.taints.add(src2)

        state.seeded = True
        self.LOG.seeded(state.taints)
        return PropagationResult.CONTINUE

    def propagate_taint(self, pair: DestSourcePair, state: TaintState,
                        frame: CrashFrame) -> PropagationResult:
        """
        Propagate the taint backwards through a single instruction.
        :param pair: the data flow effect of the instruction
        :param state: the taint state; updated in place
        :param frame: the frame that contains the instruction
        :return: the outcome of the propagation
        """
        # This can happen only due to lack of info/data for some taints
        if state.taints.is_empty():
            self.LOG.terminated_empty(frame)
            return PropagationResult.EMPTY

        src = self._make_taint(pair.source, pair.src_offset, frame)
        dest = self._make_taint(pair.destination, pair.dest_offset, frame)
        if dest.op is None:
            return PropagationResult.CONTINUE

        # Check if the destination is already tainted
        taint = state.taints.find(dest)
        if taint is None:
            return PropagationResult.CONTINUE

        # A constant written into a tainted location: we have reached the end of the taint
        if isinstance(pair.source, ImmediateOp):
            state.taints.remove(dest)
            inst = pair.instruction
            report = BlameReport(frame.function_name, str(inst), inst.debug_loc)
            state.blames.append(report)
            STAT.blames += 1
            self.LOG.terminated_found(report, state.taints)
            return PropagationResult.FOUND

        # The producer of the value is not known
        if src.op is None:
            return PropagationResult.CONTINUE

        state.taints.add(src)
        state.taints.remove(taint)
        STAT.taint_transfers += 1
        self.LOG.transferred(taint, src, state.taints)
        return PropagationResult.CONTINUE

    def _make_taint(self, op: Optional[OperandRef], offset: Optional[int],
                    frame: CrashFrame) -> TaintInfo:
        taint = TaintInfo(op, offset)
        if op is not None and offset is not None:
            self._resolver.resolve(taint, frame)
            if not taint.is_concrete_memory and not taint.is_constant():
                STAT.unresolved_mem_taints += 1
        return taint
