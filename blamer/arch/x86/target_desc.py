"""
File: x86-specific constants, instruction classification, and data flow effects

Copyright (C) Microsoft Corporation
SPDX-License-Identifier: MIT
"""
from __future__ import annotations

from typing import Optional, Final, Set

from blamer.crash_components.instruction import Instruction, AnyOperand, OperandRef, \
    RegisterOp, MemoryOp, ImmediateOp, LabelOp
from blamer.target_desc import TargetDesc, DestSourcePair

_MOVES: Final[Set[str]] = {
    "mov", "movabs", "movzx", "movsx", "movsxd", "movq", "movd", "movaps", "movups", "movapd",
    "movupd", "movdqa", "movdqu", "movss", "movsd"
}
_BINARY_ALU: Final[Set[str]] = {
    "add", "sub", "and", "or", "xor", "adc", "sbb", "imul", "shl", "sal", "shr", "sar", "rol",
    "ror", "rcl", "rcr", "andn", "addss", "addsd", "subss", "subsd", "mulss", "mulsd", "pxor",
    "xorps", "xorpd"
}
_ZEROING_IDIOMS: Final[Set[str]] = {"xor", "sub", "pxor", "xorps", "xorpd"}
_UNARY_ALU: Final[Set[str]] = {"inc", "dec", "neg", "not", "bswap"}
_CALLS: Final[Set[str]] = {"call", "callq"}
_LOOPS: Final[Set[str]] = {"loop", "loope", "loopne", "loopz", "loopnz"}
_PUSH_POP: Final[Set[str]] = {
    "push", "pushq", "pushf", "pushfq", "pusha", "pushad", "pop", "popq", "popf", "popfq", "popa",
    "popad"
}


class X86TargetDesc(TargetDesc):
    """ Target description for x86-64 architecture. """

    register_sizes = {
        "xmm0": 128, "xmm1": 128, "xmm2": 128, "xmm3": 128, "xmm4": 128, "xmm5": 128, "xmm6": 128,
        "xmm7": 128, "xmm8": 128, "xmm9": 128, "xmm10": 128, "xmm11": 128, "xmm12": 128,
        "xmm13": 128, "xmm14": 128, "xmm15": 128,

        "rax": 64, "rbx": 64, "rcx": 64, "rdx": 64, "rsi": 64, "rdi": 64, "rsp": 64, "rbp": 64,
        "r8": 64, "r9": 64, "r10": 64, "r11": 64, "r12": 64, "r13": 64, "r14": 64, "r15": 64,
        "rip": 64,

        "eax": 32, "ebx": 32, "ecx": 32, "edx": 32, "esi": 32, "edi": 32, "esp": 32, "ebp": 32,
        "r8d": 32, "r9d": 32, "r10d": 32, "r11d": 32, "r12d": 32, "r13d": 32, "r14d": 32,
        "r15d": 32, "eip": 32,

        "ax": 16, "bx": 16, "cx": 16, "dx": 16, "si": 16, "di": 16, "sp": 16, "bp": 16,
        "r8w": 16, "r9w": 16, "r10w": 16, "r11w": 16, "r12w": 16, "r13w": 16, "r14w": 16,
        "r15w": 16,

        "al": 8, "bl": 8, "cl": 8, "dl": 8, "sil": 8, "dil": 8, "spl": 8, "bpl": 8, "r8b": 8,
        "r9b": 8, "r10b": 8, "r11b": 8, "r12b": 8, "r13b": 8, "r14b": 8, "r15b": 8,
        "ah": 8, "bh": 8, "ch": 8, "dh": 8,
    }  # yapf: disable

    reg_normalized = {
        "rax": "A", "eax": "A", "ax": "A", "al": "A", "ah": "A",
        "rbx": "B", "ebx": "B", "bx": "B", "bl": "B", "bh": "B",
        "rcx": "C", "ecx": "C", "cx": "C", "cl": "C", "ch": "C",
        "rdx": "D", "edx": "D", "dx": "D", "dl": "D", "dh": "D",
        "rsi": "SI", "esi": "SI", "si": "SI", "sil": "SI",
        "rdi": "DI", "edi": "DI", "di": "DI", "dil": "DI",
        "rsp": "SP", "esp": "SP", "sp": "SP", "spl": "SP",
        "rbp": "BP", "ebp": "BP", "bp": "BP", "bpl": "BP",
        "r8": "8", "r8d": "8", "r8w": "8", "r8b": "8",
        "r9": "9", "r9d": "9", "r9w": "9", "r9b": "9",
        "r10": "10", "r10d": "10", "r10w": "10", "r10b": "10",
        "r11": "11", "r11d": "11", "r11w": "11", "r11b": "11",
        "r12": "12", "r12d": "12", "r12w": "12", "r12b": "12",
        "r13": "13", "r13d": "13", "r13w": "13", "r13b": "13",
        "r14": "14", "r14d": "14", "r14w": "14", "r14b": "14",
        "r15": "15", "r15d": "15", "r15w": "15", "r15b": "15",
        "rip": "IP", "eip": "IP",
        "xmm0": "XMM0", "xmm1": "XMM1", "xmm2": "XMM2", "xmm3": "XMM3",
        "xmm4": "XMM4", "xmm5": "XMM5", "xmm6": "XMM6", "xmm7": "XMM7",
        "xmm8": "XMM8", "xmm9": "XMM9", "xmm10": "XMM10", "xmm11": "XMM11",
        "xmm12": "XMM12", "xmm13": "XMM13", "xmm14": "XMM14", "xmm15": "XMM15",
    }  # yapf: disable

    frame_registers = ("rsp", "rbp")
    pointer_width = 64

    # ----------------------------------------------------------------------------------------------
    # Instruction classification
    @staticmethod
    def _mnemonic(inst: Instruction) -> str:
        # drop prefixes, e.g., "lock add" -> "add"
        return inst.name.split()[-1] if inst.name else ""

    def is_call(self, inst: Instruction) -> bool:
        return self._mnemonic(inst) in _CALLS

    def is_branch(self, inst: Instruction) -> bool:
        mnemonic = self._mnemonic(inst)
        return mnemonic.startswith("j") or mnemonic in _LOOPS

    def is_push_pop(self, inst: Instruction) -> bool:
        return self._mnemonic(inst) in _PUSH_POP

    # ----------------------------------------------------------------------------------------------
    # Data flow effects
    def get_dest_and_src(self, inst: Instruction) -> Optional[DestSourcePair]:
        # pylint: disable=too-many-return-statements  # justified for selectors
        mnemonic = self._mnemonic(inst)
        ops = inst.operands

        if mnemonic in _MOVES or mnemonic.startswith("cmov"):
            if len(ops) != 2:
                return None  # e.g., string instruction movsd
            # conditional moves may keep the old value of the destination
            src2 = ops[0] if mnemonic.startswith("cmov") else None
            return self._make_pair(inst, ops[0], ops[1], src2)

        if mnemonic == "lea":
            if len(ops) != 2 or not isinstance(ops[1], MemoryOp):
                return None
            # LEA does not access memory; the result depends only on the address registers
            base = ops[1].get_base_register()
            if base is None:
                return self._make_pair(inst, ops[0], ImmediateOp(hex(ops[1].displacement)))
            return self._make_pair(inst, ops[0], base)

        if mnemonic in _ZEROING_IDIOMS and len(ops) == 2 \
                and isinstance(ops[0], RegisterOp) and isinstance(ops[1], RegisterOp) \
                and ops[0].reg_id == ops[1].reg_id:
            return self._make_pair(inst, ops[0], ImmediateOp("0", ops[0].width))

        if mnemonic in _BINARY_ALU:
            if len(ops) == 2:
                # read-modify-write: the old value of the destination is the first source
                return self._make_pair(inst, ops[0], ops[0], ops[1])
            if len(ops) == 3:
                return self._make_pair(inst, ops[0], ops[1], ops[2])
            if len(ops) == 1 and mnemonic != "imul":
                # shift/rotate by one
                return self._make_pair(inst, ops[0], ops[0])
            return None

        if mnemonic in _UNARY_ALU and len(ops) == 1:
            return self._make_pair(inst, ops[0], ops[0])

        if mnemonic == "xchg" and len(ops) == 2:
            return self._make_pair(inst, ops[0], ops[1])

        return None

    @staticmethod
    def _as_ref(op: Optional[AnyOperand]) -> Optional[OperandRef]:
        if op is None:
            return None
        if isinstance(op, LabelOp):
            # a symbol is a link-time constant
            return ImmediateOp(op.value)
        return op

    @staticmethod
    def _offset(op: Optional[OperandRef]) -> Optional[int]:
        if isinstance(op, MemoryOp):
            return op.displacement
        return None

    def _make_pair(self,
                   inst: Instruction,
                   dest: AnyOperand,
                   src: Optional[AnyOperand] = None,
                   src2: Optional[AnyOperand] = None) -> Optional[DestSourcePair]:
        dest_ref = self._as_ref(dest)
        if isinstance(dest_ref, ImmediateOp):
            return None
        src_ref = self._as_ref(src)
        src2_ref = self._as_ref(src2)
        return DestSourcePair(
            instruction=inst,
            destination=dest_ref,
            dest_offset=self._offset(dest_ref),
            source=src_ref,
            src_offset=self._offset(src_ref),
            source2=src2_ref,
            src2_offset=self._offset(src2_ref))
