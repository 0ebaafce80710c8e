"""
File: Parsing of disassembled instructions into our internal representation (Instruction).
      This file contains x86-specific code (Intel syntax).

Copyright (C) Microsoft Corporation
SPDX-License-Identifier: MIT
"""
from __future__ import annotations

import re
from typing import TYPE_CHECKING, List, Optional

from blamer.asm_parser import AsmParser, asm_parser_assert
from blamer.crash_components.instruction import Instruction, AnyOperand, RegisterOp, MemoryOp, \
    ImmediateOp, LabelOp

if TYPE_CHECKING:
    from blamer.target_desc import TargetDesc

# ==================================================================================================
# Private: Parser of assembly lines in Intel syntax
# ==================================================================================================
_PATTERN_CONST_INT = re.compile("^-?[0-9]+$")
_PATTERN_CONST_HEX = re.compile("^-?0x[0-9abcdef]+$")
_PATTERN_CONST_BIN = re.compile("^-?0b[01]+$")
_PATTERN_SEGMENT = re.compile("^[cdefgs]s:")

_ASM_PREFIXES = [
    "lock", "rex", "rep", "repe", "repne", "repz", "repnz", "notrack", "bnd", "data16"
]
_MEMORY_SIZES = {
    "byte": 8,
    "word": 16,
    "dword": 32,
    "qword": 64,
    "tbyte": 80,
    "xmmword": 128,
    "ymmword": 256,
    "zmmword": 512
}


def _is_const(token: str) -> bool:
    return bool(_PATTERN_CONST_BIN.match(token) or _PATTERN_CONST_HEX.match(token)
                or _PATTERN_CONST_INT.match(token))


def _const_to_int(token: str) -> int:
    negative = token.startswith("-")
    token = token.lstrip("-")
    if token.startswith("0x"):
        value = int(token, 16)
    elif token.startswith("0b"):
        value = int(token, 2)
    else:
        value = int(token, 10)
    return -value if negative else value


# ==================================================================================================
# Public Interface: Parser of X86 instructions
# ==================================================================================================
class X86AsmParser(AsmParser):
    """ Implementation of the AsmParser interface for x86 instructions in Intel syntax """

    def __init__(self, target_desc: TargetDesc) -> None:
        super().__init__(target_desc)
        self._curr_ln = -1

    def _get_instruction_name(self, line: str) -> str:
        """ Get the name of the instruction from an assembly line, including prefixes """
        name = ""
        for word in line.split():
            if word in _ASM_PREFIXES:
                name += word + " "
                continue
            name += word
            break
        return name

    def _get_instruction_operands(self, line: str, name: str) -> List[str]:
        """ Get the list of operand strings from an assembly line """
        operands_raw = line.removeprefix(name).split(",")
        if operands_raw == [""]:  # no operands
            return []
        operands_raw = [o.strip() for o in operands_raw]  # remove spaces
        return operands_raw

    def _build_instruction(self, name: str, operands_raw: List[str], line_num: int) -> Instruction:
        self._curr_ln = line_num
        inst = Instruction(name)
        for op_raw in operands_raw:
            asm_parser_assert(op_raw != "", line_num, f"Empty operand in '{name}'")
            inst.add_op(self._parse_operand(op_raw))
        return inst

    # ----------------------------------------------------------------------------------------------
    # Operands
    def _parse_operand(self, op_raw: str) -> AnyOperand:
        # match address
        if "[" in op_raw:
            return self._parse_memory_operand(op_raw)

        # match immediate value
        if _is_const(op_raw):
            return ImmediateOp(str(_const_to_int(op_raw)))

        # match register
        if self.target_desc.is_register(op_raw):
            return RegisterOp(op_raw, self.target_desc.register_sizes[op_raw],
                              self.target_desc.get_reg_id(op_raw))

        # anything else is a symbolic reference (label, function name, `offset sym`, ...)
        return LabelOp(op_raw)

    def _parse_memory_operand(self, op_raw: str) -> MemoryOp:
        prefix, _, rest = op_raw.partition("[")
        asm_parser_assert(rest.endswith("]"), self._curr_ln, f"Unterminated address: {op_raw}")
        address = rest[:-1].strip()

        # access size, e.g., "qword ptr"; "ptr" alone matches any size
        width = 64
        prefix_words = prefix.split()
        if prefix_words and prefix_words[0] in _MEMORY_SIZES:
            width = _MEMORY_SIZES[prefix_words[0]]
        elif prefix_words:
            asm_parser_assert(prefix_words[0] == "ptr" or _PATTERN_SEGMENT.match(prefix_words[0]),
                              self._curr_ln, f"Unknown pointer size in {op_raw}")

        base: Optional[str] = None
        index: Optional[str] = None
        scale = 1
        displacement = 0

        # e.g., "rbp - 0x8" -> ["rbp", "-0x8"]
        terms = [t.replace(" ", "") for t in address.replace("-", "+-").split("+")]
        for term in terms:
            if not term:
                continue
            if _PATTERN_SEGMENT.match(term):
                term = term[3:]
            if "*" in term:
                reg, _, factor = term.partition("*")
                if _is_const(reg):
                    reg, factor = factor, reg
                asm_parser_assert(self.target_desc.is_register(reg) and _is_const(factor),
                                  self._curr_ln, f"Invalid index in {op_raw}")
                index = reg
                scale = _const_to_int(factor)
            elif self.target_desc.is_register(term):
                if base is None:
                    base = term
                else:
                    asm_parser_assert(index is None, self._curr_ln,
                                      f"Too many registers in {op_raw}")
                    index = term
            elif _is_const(term):
                displacement += _const_to_int(term)
            # symbolic terms (e.g., [rip + global_var]) do not change the base register

        base_id = self.target_desc.get_reg_id(base) if base else None
        return MemoryOp(address, width, base, base_id, index, scale, displacement)
