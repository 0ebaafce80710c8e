"""
File: Collection of classes to represent lifted instructions of a crashed program
      and their operands.

Copyright (C) Microsoft Corporation
SPDX-License-Identifier: MIT
"""
from __future__ import annotations

from abc import ABC
from typing import List, Optional, Final, Union, NamedTuple


# ==================================================================================================
# Operands
# ==================================================================================================
class Operand(ABC):
    """ Operand of an instruction """

    value: str
    """ The value of the operand, e.g., name of a register, memory address, etc. """

    def __init__(self, value: str):
        self.value = value.lower()
        super().__init__()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.value})"


class RegisterOp(Operand):
    """ Register operand of an instruction """

    width: Final[int]
    reg_id: Final[str]
    """ Architectural identity of the register; sub-registers share it with the full register
    (e.g., rax, eax, and al all have the same reg_id) """

    def __init__(self, value: str, width: int, reg_id: Optional[str] = None):
        self.width = width
        self.reg_id = reg_id if reg_id is not None else value.lower()
        super().__init__(value)


class MemoryOp(Operand):
    """
    Memory operand of an instruction.
    The address is decomposed into `[base + index * scale + displacement]`.
    """

    width: Final[int]
    base: Final[Optional[str]]
    base_id: Final[Optional[str]]
    index: Final[Optional[str]]
    scale: Final[int]
    displacement: Final[int]

    # pylint: disable=too-many-arguments
    def __init__(self, address: str, width: int, base: Optional[str] = None,
                 base_id: Optional[str] = None, index: Optional[str] = None, scale: int = 1,
                 displacement: int = 0) -> None:
        self.width = width
        self.base = base.lower() if base else None
        if base_id is None and self.base is not None:
            base_id = self.base
        self.base_id = base_id
        self.index = index.lower() if index else None
        self.scale = scale
        self.displacement = displacement
        super().__init__(address)

    def get_base_register(self) -> Optional[RegisterOp]:
        """
        Get the base register of the memory operand, if any.
        E.g., for [rax + 8], return rax.
        :return: The base register, or None if there is no base register
        """
        if self.base is None:
            return None
        return RegisterOp(self.base, 64, self.base_id)


class ImmediateOp(Operand):
    """ Immediate (constant) operand of an instruction """

    width: Final[int]

    def __init__(self, value: str, width: int = 64) -> None:
        self.width = width
        super().__init__(value)

    def as_int(self) -> int:
        """ Numeric value of the immediate """
        return int(self.value, 0)


class LabelOp(Operand):
    """ Label or symbolic target operand of an instruction (e.g., the target of a call) """

    def __init__(self, value: str) -> None:
        super().__init__(value)


AnyOperand = Union[RegisterOp, MemoryOp, ImmediateOp, LabelOp]
OperandRef = Union[RegisterOp, MemoryOp, ImmediateOp]
""" Operand that can participate in data flow: register, memory, or constant """


# ==================================================================================================
# Instructions
# ==================================================================================================
class DebugLoc(NamedTuple):
    """ Source location of an instruction, taken from the debug info of the crashed binary """

    filename: str
    line: int


class Instruction:
    """ Lifted instruction in a stack frame of the crashed program """

    name: Final[str]
    """ name: The name of the instruction without any operands (including prefixes) """

    operands: Final[List[AnyOperand]]
    """ operands: List of explicit operands of the instruction """

    is_crash_start: bool = False
    """ is_crash_start: If True, this is the instruction at which the frame was interrupted
    by the crash (the faulting instruction in the innermost frame, the call site in the others) """

    debug_loc: Optional[DebugLoc] = None
    """ debug_loc: Source location of the instruction, if debug info is available """

    _line_num: int = -1  # line number in the source asm; access via line_num()

    def __init__(self, name: str, is_crash_start: bool = False,
                 debug_loc: Optional[DebugLoc] = None) -> None:
        self.name = name.lower()
        self.is_crash_start = is_crash_start
        self.debug_loc = debug_loc
        self.operands = []

    # ----------------------------------------------------------------------------------------------
    # Printing

    def __str__(self) -> str:
        op_list = [
            "[" + o.value + "]" if isinstance(o, MemoryOp) else o.value for o in self.operands
        ]
        operands = ', '.join(op_list)
        return f"{self.name} {operands}".strip()

    def __repr__(self) -> str:
        return f"Instruction({self})"

    # ----------------------------------------------------------------------------------------------
    # Operand Management

    def add_op(self, op: AnyOperand) -> Instruction:
        """
        Add operand to the instruction. Returns the instruction for chaining.
        :param op: Operand to add
        :return: The instruction
        """
        self.operands.append(op)
        return self

    # ----------------------------------------------------------------------------------------------
    # Instruction in Assembly
    def assign_line_num(self, line_num: int) -> None:
        """ Assign the line number in the crash trace file where the instruction is located. """
        assert self._line_num == -1, "Line number is already assigned"
        self._line_num = line_num

    def line_num(self) -> int:
        """ Get the line number in the crash trace file where the instruction is located. """
        assert self._line_num != -1, "Line number is not assigned"
        return self._line_num
