"""
File: Architectural details of the target platform, such as register names,
classification of instructions, and the data flow effects of instructions.

Copyright (C) Microsoft Corporation
SPDX-License-Identifier: MIT
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple, NamedTuple, TYPE_CHECKING

if TYPE_CHECKING:
    from .crash_components.instruction import Instruction, OperandRef

# ==================================================================================================
# Custom Types
# ==================================================================================================
RegName = str
RegNormalizedName = str


class DestSourcePair(NamedTuple):
    """
    Data flow effect of a single instruction: where the instruction writes (destination)
    and where the written value comes from (up to two sources).
    Displacements are set only for memory operands.
    """

    instruction: Instruction
    destination: Optional[OperandRef] = None
    dest_offset: Optional[int] = None
    source: Optional[OperandRef] = None
    src_offset: Optional[int] = None
    source2: Optional[OperandRef] = None
    src2_offset: Optional[int] = None


# ==================================================================================================
# Main Target Description
# ==================================================================================================
class TargetDesc(ABC):
    """ Abstract class defining the interface to target description classes. """

    register_sizes: Dict[RegName, int]
    """ Mapping from register names to their sizes in bits. """

    reg_normalized: Dict[RegName, RegNormalizedName]
    """ Mapping from register names to the names of the full architectural registers
    that contain them. """

    frame_registers: Tuple[RegName, ...]
    """ Registers that hold the stack and frame pointers; only addresses relative to these
    registers are stable across the instructions of a frame. """

    pointer_width: int
    """ Width of memory addresses, in bits. """

    def get_reg_id(self, reg_name: RegName) -> RegNormalizedName:
        """ Get the architectural identity of a register (e.g., eax -> A) """
        return self.reg_normalized.get(reg_name.lower(), reg_name.upper())

    def is_register(self, name: str) -> bool:
        """ Check if the given string is a name of a register """
        return name.lower() in self.register_sizes

    def is_frame_register(self, reg_name: RegName) -> bool:
        """ Check if the register is a trusted base for concrete memory addresses """
        return reg_name.lower() in self.frame_registers

    @abstractmethod
    def is_call(self, inst: Instruction) -> bool:
        """ Check if the instruction is a call """

    @abstractmethod
    def is_branch(self, inst: Instruction) -> bool:
        """ Check if the instruction is a direct or indirect branch (conditional or not) """

    @abstractmethod
    def is_push_pop(self, inst: Instruction) -> bool:
        """ Check if the instruction pushes to or pops from the stack (frame setup/teardown) """

    @abstractmethod
    def get_dest_and_src(self, inst: Instruction) -> Optional[DestSourcePair]:
        """
        Get the data flow effect of the instruction.
        :param inst: the instruction to be analysed
        :return: the destination and source operands, or None if the effect of the instruction
                 is not modeled
        """
