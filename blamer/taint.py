"""
File: Taint data structures: tainted locations, their resolution to concrete memory addresses,
      and the list of locations tainted during the analysis of a crash trace.

Copyright (C) Microsoft Corporation
SPDX-License-Identifier: MIT
"""
from __future__ import annotations

from typing import Iterator, List, Optional, TYPE_CHECKING
from typing_extensions import assert_never

from .crash_components.instruction import OperandRef, RegisterOp, MemoryOp, ImmediateOp

if TYPE_CHECKING:
    from .crash_components.crash_trace import CrashFrame
    from .interfaces import BlameReport
    from .target_desc import TargetDesc


# ==================================================================================================
# Tainted location
# ==================================================================================================
class TaintInfo:
    """
    A location that holds a value whose origin is being traced.

    The location is described by an operand (and, for memory operands, a displacement).
    If the address of a memory operand could be computed from the register values
    captured at the crash, the taint is *concrete* and is compared by address.
    Otherwise, it is compared by the identity of the (base) register.
    """

    op: Optional[OperandRef]
    offset: Optional[int]
    is_concrete_memory: bool
    concrete_address: int

    def __init__(self, op: Optional[OperandRef], offset: Optional[int] = None) -> None:
        self.op = op
        self.offset = offset
        self.is_concrete_memory = False
        self.concrete_address = 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TaintInfo):
            return NotImplemented
        # For memory taints, compare the actual addresses
        if self.is_concrete_memory and other.is_concrete_memory:
            return self.concrete_address == other.concrete_address
        # Otherwise, compare the registers
        reg_id = self.reg_id()
        return reg_id is not None and reg_id == other.reg_id()

    __hash__ = None  # type: ignore  # mutable; equality is not transitive

    def __str__(self) -> str:
        if self.is_concrete_memory:
            return f"mem addr: 0x{self.concrete_address:x}"
        if isinstance(self.op, MemoryOp):
            return f"[{self.op.value}] (unresolved)"
        if self.op is None:
            return "<none>"
        return self.op.value

    def __repr__(self) -> str:
        return f"TaintInfo({self})"

    def reg_id(self) -> Optional[str]:
        """
        Get the identity of the register behind this taint:
        the register itself for register operands, the base register for memory operands,
        and None for constants and indexed memory operands.
        """
        op = self.op
        if op is None:
            return None
        if isinstance(op, RegisterOp):
            return op.reg_id
        if isinstance(op, MemoryOp):
            # the slot of an indexed operand is unknown
            return op.base_id if op.index is None else None
        if isinstance(op, ImmediateOp):
            return None
        assert_never(op)

    def is_constant(self) -> bool:
        """ True if the taint describes a constant (immediate) operand """
        return isinstance(self.op, ImmediateOp)


# ==================================================================================================
# Address resolution
# ==================================================================================================
class AddressResolver:
    """
    Computes concrete memory addresses of tainted memory operands.

    Only the stack and frame pointer registers are trusted: their values are stable
    across the body of a function, so the value captured at the crash is also the value
    they had when an earlier instruction of the frame accessed memory.
    Any other register might have been reassigned in between.
    """

    def __init__(self, target_desc: TargetDesc) -> None:
        self._target_desc = target_desc
        self._address_mask = (1 << target_desc.pointer_width) - 1

    def resolve(self, taint: TaintInfo, frame: CrashFrame) -> None:
        """
        Try to compute the concrete address of the taint; updates the taint in place.
        If the address cannot be computed, the taint stays unresolved.
        """
        op = taint.op
        if op is None or isinstance(op, ImmediateOp) or taint.offset is None:
            return

        taint.is_concrete_memory = True

        reg_name: Optional[str]
        if isinstance(op, MemoryOp):
            if op.index is not None:
                taint.is_concrete_memory = False
                return
            if op.base is None:
                # absolute address
                taint.concrete_address = taint.offset & self._address_mask
                return
            reg_name = op.base
        elif isinstance(op, RegisterOp):
            reg_name = op.value
        else:
            assert_never(op)

        # If the value is not available or not trusted, just taint the base register
        reg_value = frame.read_register(reg_name) if reg_name else None
        if reg_value is None or reg_name is None or \
                not self._target_desc.is_frame_register(reg_name):
            taint.is_concrete_memory = False
            return

        real_addr = int(reg_value, 16) + taint.offset
        taint.concrete_address = real_addr & self._address_mask


# ==================================================================================================
# Taint list
# ==================================================================================================
class TaintList:
    """
    Collection of the currently tainted locations.
    Duplicates are allowed; lookups use the TaintInfo equality rules.
    """

    def __init__(self) -> None:
        self._taints: List[TaintInfo] = []

    def __len__(self) -> int:
        return len(self._taints)

    def __iter__(self) -> Iterator[TaintInfo]:
        return iter(self._taints)

    def __str__(self) -> str:
        return "[" + ", ".join(str(t) for t in self._taints) + "]"

    def is_empty(self) -> bool:
        """ True if nothing is tainted """
        return not self._taints

    def add(self, taint: TaintInfo) -> None:
        """ Taint a location; operands that are absent or constant are ignored """
        if taint.op is None or taint.is_constant():
            return
        self._taints.append(taint)

    def remove(self, taint: TaintInfo) -> None:
        """
        Remove the first location equal to the given one.
        :raises AssertionError: if the location is not tainted
        """
        for i, t in enumerate(self._taints):
            if t != taint:
                continue
            del self._taints[i]
            return
        raise AssertionError(f"Operand {taint} not in the taint list")

    def find(self, taint: TaintInfo) -> Optional[TaintInfo]:
        """ Get the tainted location equal to the given one, or None if it is not tainted """
        for t in self._taints:
            if t == taint:
                return t
        return None


class TaintState:
    """
    Mutable state of the analysis of one crash trace.
    It is carried across all frames of the trace; independent traces must use independent states.
    """

    taints: TaintList
    seeded: bool
    blames: List[BlameReport]

    def __init__(self) -> None:
        self.taints = TaintList()
        self.seeded = False
        self.blames = []
