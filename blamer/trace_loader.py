"""
File: Loading of crash traces (lifted frames and register snapshots) from YAML files

Copyright (C) Microsoft Corporation
SPDX-License-Identifier: MIT
"""
from __future__ import annotations

import os
import re
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from .config import IncludeLoader
from .crash_components.crash_trace import BasicBlock, CrashFrame, CrashTrace, RegisterSnapshot
from .crash_components.instruction import DebugLoc, Instruction

if TYPE_CHECKING:
    from .asm_parser import AsmParser

_PATTERN_HEX_VALUE = re.compile("^(0x)?[0-9a-f]+$")
_INSTRUCTION_KEYS = {"asm", "crash", "file", "line"}
_FRAME_KEYS = {"function", "registers", "instructions", "blocks"}


class TraceException(SystemExit):
    """ Exception raised when a crash trace file is malformed """

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"\nTRACE ERROR: {path}: {message}\n")


class TraceLoader:
    """
    Loader of crash traces described in YAML.

    Format:
        frames:
          - function: <name>
            registers: {<reg>: <hex value>, ...}
            instructions:              # or `blocks: [[...], [...]]`; null for a missing frame
              - <asm line>
              - asm: <asm line>
                crash: true            # exactly one per frame
                file: <source file>    # optional debug info
                line: <source line>
    """

    def __init__(self, asm_parser: AsmParser) -> None:
        self._asm_parser = asm_parser
        self._path = ""

    def load(self, path: str, include_dir: str = "") -> CrashTrace:
        """ Load a crash trace from a YAML file """
        self._path = path
        with open(path, "r") as f:
            loader = IncludeLoader(f, include_dir)
            try:
                data = loader.get_single_data()
            finally:
                loader.dispose()
        name = os.path.splitext(os.path.basename(path))[0]
        return self.from_dict(data, name)

    def from_dict(self, data: Any, name: str = "") -> CrashTrace:
        """ Build a crash trace from already parsed YAML data """
        self._check(isinstance(data, dict) and "frames" in data,
                    "The trace must be a mapping with a `frames` key")
        frames_raw = data["frames"]
        self._check(isinstance(frames_raw, list) and len(frames_raw) > 0,
                    "`frames` must be a non-empty list")
        frames = [self._parse_frame(f, i) for i, f in enumerate(frames_raw)]
        return CrashTrace(frames, name)

    # ----------------------------------------------------------------------------------------------
    # Frames
    def _parse_frame(self, frame_raw: Any, frame_id: int) -> CrashFrame:
        self._check(isinstance(frame_raw, dict), f"Frame #{frame_id} must be a mapping")
        unknown = set(frame_raw.keys()) - _FRAME_KEYS
        self._check(not unknown, f"Frame #{frame_id} has unknown keys {sorted(unknown)}")
        self._check("function" in frame_raw, f"Frame #{frame_id} has no function name")
        function_name = str(frame_raw["function"])
        self._check("instructions" not in frame_raw or "blocks" not in frame_raw,
                    f"Frame {function_name}: `instructions` and `blocks` are mutually exclusive")

        registers = self._parse_registers(frame_raw.get("registers"), function_name)

        blocks: Optional[List[BasicBlock]]
        if frame_raw.get("blocks") is not None:
            blocks_raw = frame_raw["blocks"]
            self._check(isinstance(blocks_raw, list),
                        f"Frame {function_name}: `blocks` must be a list")
            blocks = [
                BasicBlock(f".bb_{function_name}.{i}",
                           self._parse_instructions(b, function_name))
                for i, b in enumerate(blocks_raw)
            ]
        elif frame_raw.get("instructions") is not None:
            blocks = [
                BasicBlock(f".bb_{function_name}.0",
                           self._parse_instructions(frame_raw["instructions"], function_name))
            ]
        else:
            return CrashFrame(function_name, None, registers)

        frame = CrashFrame(function_name, blocks, registers)
        n_crash = sum(1 for inst in frame.instructions() if inst.is_crash_start)
        self._check(n_crash == 1,
                    f"Frame {function_name} must have exactly one crash instruction "
                    f"(found {n_crash})")
        return frame

    def _parse_registers(self, registers_raw: Any, function_name: str) -> RegisterSnapshot:
        if registers_raw is None:
            return {}
        self._check(isinstance(registers_raw, dict),
                    f"Frame {function_name}: `registers` must be a mapping")
        registers: Dict[str, str] = {}
        for reg, value in registers_raw.items():
            # YAML reads unquoted hex values as integers, and `true`/`false` as booleans
            if isinstance(value, int) and not isinstance(value, bool):
                value_str = hex(value)
            else:
                value_str = str(value).strip().lower()
            self._check(bool(_PATTERN_HEX_VALUE.match(value_str)),
                        f"Frame {function_name}: invalid value of register {reg}: {value}")
            registers[str(reg).lower()] = value_str
        return registers

    # ----------------------------------------------------------------------------------------------
    # Instructions
    def _parse_instructions(self, instructions_raw: Any, function_name: str) -> List[Instruction]:
        self._check(isinstance(instructions_raw, list),
                    f"Frame {function_name}: instructions must be a list")
        return [self._parse_instruction(i, function_name) for i in instructions_raw]

    def _parse_instruction(self, inst_raw: Any, function_name: str) -> Instruction:
        if isinstance(inst_raw, str):
            return self._asm_parser.parse_line(inst_raw)

        self._check(isinstance(inst_raw, dict) and "asm" in inst_raw,
                    f"Frame {function_name}: invalid instruction {inst_raw}")
        unknown = set(inst_raw.keys()) - _INSTRUCTION_KEYS
        self._check(not unknown,
                    f"Frame {function_name}: instruction has unknown keys {sorted(unknown)}")

        inst = self._asm_parser.parse_line(str(inst_raw["asm"]))
        inst.is_crash_start = bool(inst_raw.get("crash", False))

        if "line" in inst_raw:
            line = inst_raw["line"]
            self._check(isinstance(line, int) and line > 0,
                        f"Frame {function_name}: invalid line number {line}")
            inst.debug_loc = DebugLoc(str(inst_raw.get("file", "<unknown>")), line)
        return inst

    def _check(self, condition: bool, message: str) -> None:
        if not condition:
            raise TraceException(self._path or "<trace>", message)
