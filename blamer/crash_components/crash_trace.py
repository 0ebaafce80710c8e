"""
File: Classes representing an unwound call stack of a crashed program
      (stack frames, their instruction streams, and their register snapshots).

Copyright (C) Microsoft Corporation
SPDX-License-Identifier: MIT
"""
from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Final

from .instruction import Instruction

RegisterSnapshot = Dict[str, str]
""" Mapping of lower-case register names to hexadecimal values captured at the crash """


class BasicBlock:
    """ Straight-line sequence of lifted instructions """

    name: Final[str]
    instructions: Final[List[Instruction]]

    def __init__(self, name: str, instructions: Optional[List[Instruction]] = None) -> None:
        self.name = name
        self.instructions = instructions if instructions is not None else []

    def __iter__(self) -> Iterator[Instruction]:
        return iter(self.instructions)

    def __len__(self) -> int:
        return len(self.instructions)


class CrashFrame:
    """
    One stack frame of the crashed program.

    The frame is *missing* when its function could not be lifted; in this case
    `blocks` is None and the frame cannot be analysed.
    """

    function_name: Final[str]
    blocks: Final[Optional[List[BasicBlock]]]
    registers: Final[RegisterSnapshot]

    def __init__(self,
                 function_name: str,
                 blocks: Optional[List[BasicBlock]],
                 registers: Optional[RegisterSnapshot] = None) -> None:
        self.function_name = function_name
        self.blocks = blocks
        self.registers = {k.lower(): v for k, v in (registers or {}).items()}

    def __repr__(self) -> str:
        return f"CrashFrame({self.function_name})"

    def is_missing(self) -> bool:
        """ True if the function of this frame has no lifted instruction stream """
        return self.blocks is None

    def read_register(self, name: str) -> Optional[str]:
        """
        Get the value of a register captured for this frame.
        :param name: register name (case-insensitive)
        :return: the value as a hexadecimal string, or None if it was not captured
        """
        value = self.registers.get(name.lower())
        if not value:
            return None
        return value

    def instructions(self) -> List[Instruction]:
        """ Get all instructions of the frame in program order """
        assert self.blocks is not None, f"Frame {self.function_name} is missing"
        return [inst for bb in self.blocks for inst in bb]

    def reversed_instructions(self) -> Iterator[Instruction]:
        """ Iterate over the instructions of the frame backwards, last block first """
        assert self.blocks is not None, f"Frame {self.function_name} is missing"
        for bb in reversed(self.blocks):
            yield from reversed(bb.instructions)

    def get_crash_instruction(self) -> Optional[Instruction]:
        """ Get the instruction marked as the crash point of this frame, if any """
        if self.blocks is None:
            return None
        for inst in self.instructions():
            if inst.is_crash_start:
                return inst
        return None


class CrashTrace:
    """ Ordered sequence of frames, from the faulting frame outwards """

    frames: Final[List[CrashFrame]]
    name: str

    def __init__(self, frames: List[CrashFrame], name: str = "") -> None:
        self.frames = frames
        self.name = name

    def __iter__(self) -> Iterator[CrashFrame]:
        return iter(self.frames)

    def __len__(self) -> int:
        return len(self.frames)
