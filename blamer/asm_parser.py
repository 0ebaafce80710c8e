"""
File: Parsing of disassembled instructions into our internal representation (Instruction).
      This file contains ISA-independent code; see arch/<isa>/asm_parser.py for ISA-specific code.

Copyright (C) Microsoft Corporation
SPDX-License-Identifier: MIT
"""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from .crash_components.instruction import Instruction
    from .target_desc import TargetDesc

RE_REDUNDANT_SPACES = re.compile(r"\s+")


class AsmParserException(SystemExit):
    """ Exception raised when an instruction cannot be parsed """

    def __init__(self, line_number: int, explanation: str) -> None:
        location = f" (line {line_number})" if line_number >= 0 else ""
        super().__init__(f"[ERROR] Error while parsing assembly{location}\n"
                         f"       Issue: {explanation}")


def asm_parser_assert(condition: bool, line_number: int, explanation: str) -> None:
    """ Raise an AsmParserException if the condition is False """
    if not condition:
        raise AsmParserException(line_number, explanation)


class AsmParser(ABC):
    """ Interface to the ISA-specific parsers of disassembled instructions """

    _comment_chars: str = "#;"

    def __init__(self, target_desc: TargetDesc) -> None:
        self.target_desc = target_desc

    def clean_line(self, line: str) -> str:
        """ Remove comments and redundant spaces from an assembly line """
        for c in self._comment_chars:
            line = line.split(c, 1)[0]
        return RE_REDUNDANT_SPACES.sub(" ", line.strip().lower())

    def parse_line(self, line: str, line_num: int = -1) -> Instruction:
        """
        Parse a single line of disassembly into an Instruction.
        :param line: the assembly line, e.g., "mov rax, qword ptr [rbp - 8]"
        :param line_num: position of the line in its source file (used in error messages)
        :return: the parsed instruction, with no crash flag and no debug info
        """
        clean = self.clean_line(line)
        asm_parser_assert(clean != "", line_num, f"Empty instruction: '{line}'")
        name = self._get_instruction_name(clean)
        operands_raw = self._get_instruction_operands(clean, name)
        inst = self._build_instruction(name, operands_raw, line_num)
        if line_num >= 0:
            inst.assign_line_num(line_num)
        return inst

    @abstractmethod
    def _get_instruction_name(self, line: str) -> str:
        pass

    @abstractmethod
    def _get_instruction_operands(self, line: str, name: str) -> List[str]:
        pass

    @abstractmethod
    def _build_instruction(self, name: str, operands_raw: List[str], line_num: int) -> Instruction:
        pass
