""" File: Global statistics class

Copyright (C) Microsoft Corporation
SPDX-License-Identifier: MIT
"""
from __future__ import annotations

from typing import Any, Dict


class AnalysisStats:
    """
    Class responsible for storing and managing the statistics of the taint analysis.
    Implements the Borg pattern to share the state between instances.
    """
    _borg_shared_state: Dict[Any, Any] = {}

    frames_skipped: int = 0
    frames_scanned: int = 0
    frames_missing: int = 0
    instructions_analysed: int = 0
    instructions_skipped: int = 0
    taint_transfers: int = 0
    unresolved_mem_taints: int = 0
    blames: int = 0

    # Implementation of Borg pattern
    def __init__(self) -> None:
        self.__dict__ = self._borg_shared_state

    def __str__(self) -> str:
        s = ""
        s += f"Frames: {self.frames_scanned} scanned, {self.frames_skipped} skipped, " \
             f"{self.frames_missing} missing\n"
        s += f"Instructions: {self.instructions_analysed} analysed, " \
             f"{self.instructions_skipped} skipped\n"
        s += "Taint:\n"
        s += f"  Transfers: {self.taint_transfers}\n"
        s += f"  Unresolved Mem. Taints: {self.unresolved_mem_taints}\n"
        s += f"  Blames: {self.blames}\n"
        return s

    def reset(self) -> None:
        """ Zero all counters """
        self.frames_skipped = 0
        self.frames_scanned = 0
        self.frames_missing = 0
        self.instructions_analysed = 0
        self.instructions_skipped = 0
        self.taint_transfers = 0
        self.unresolved_mem_taints = 0
        self.blames = 0
