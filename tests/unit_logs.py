"""
File: tests for the reporting of the analysis results

Copyright (C) Microsoft Corporation
SPDX-License-Identifier: MIT
"""
# pylint: disable=missing-function-docstring
# pylint: disable=missing-class-docstring

import io
import unittest
from contextlib import redirect_stdout
from copy import deepcopy

from blamer.analysis import TaintAnalysis
from blamer.arch.x86.asm_parser import X86AsmParser
from blamer.arch.x86.target_desc import X86TargetDesc
from blamer.config import CONF, Conf
from blamer.crash_components.crash_trace import BasicBlock, CrashFrame, CrashTrace
from blamer.crash_components.instruction import DebugLoc
from blamer.interfaces import BlameReport
from blamer.logs import print_blame_report, update_logging_after_config_change, TaintLogger, \
    STAT

TARGET_DESC = X86TargetDesc()
PARSER = X86AsmParser(TARGET_DESC)


class LogsTest(unittest.TestCase):
    _prev_conf: Conf

    def setUp(self) -> None:
        self._prev_conf = deepcopy(CONF)
        CONF.color = False
        CONF.stop_policy = "first_blame"
        STAT.reset()

    def tearDown(self) -> None:
        for attr in list(CONF.__dict__):
            if attr not in self._prev_conf.__dict__:
                delattr(CONF, attr)
        for attr, value in self._prev_conf.__dict__.items():
            setattr(CONF, attr, value)
        update_logging_after_config_change()

    def _set_logging_modes(self, modes) -> None:
        CONF.logging_modes = modes
        update_logging_after_config_change()

    def test_report_with_debug_info(self) -> None:
        buf = io.StringIO()
        with redirect_stdout(buf):
            print_blame_report(BlameReport("foo", "mov rax, 0", DebugLoc("test.c", 3)))
        self.assertEqual(buf.getvalue(), "\nBlame Function is foo\n"
                         "At Line Number 3, from file test.c\n")

    def test_report_without_debug_info(self) -> None:
        buf = io.StringIO()
        with redirect_stdout(buf):
            print_blame_report(BlameReport("foo", "mov rax, 0", None))
        out = buf.getvalue()
        self.assertIn("Blame Function is foo", out)
        self.assertIn("WARNING: [analysis] Please compile with -g to get full line info.", out)
        self.assertIn("Blame instruction is mov rax, 0", out)

    def _run(self) -> str:
        instructions = [
            PARSER.parse_line("push rbp"),
            PARSER.parse_line("mov rax, 0"),
            PARSER.parse_line("mov rbx, qword ptr [rax]"),
        ]
        instructions[-1].is_crash_start = True
        trace = CrashTrace([CrashFrame("main", [BasicBlock("bb", instructions)])], "test")

        buf = io.StringIO()
        with redirect_stdout(buf):
            self.assertTrue(TaintAnalysis(TARGET_DESC, TaintLogger()).run_on_trace(trace))
        return buf.getvalue()

    def test_quiet(self) -> None:
        self._set_logging_modes([])
        out = self._run()
        self.assertIn("Blame Function is main", out)
        self.assertNotIn("INFO", out)
        self.assertNotIn("Taint List", out)

    def test_info_and_stat(self) -> None:
        self._set_logging_modes(["info", "stat"])
        out = self._run()
        self.assertIn("INFO: [analysis] Analysing crash trace test with 1 frame(s)", out)
        self.assertIn("INFO: [analysis] ### Frame: main", out)
        self.assertIn("INFO: [analysis] Taint Analysis done", out)
        self.assertIn("Blames: 1", out)

    def test_debug_taint(self) -> None:
        self._set_logging_modes(["dbg_taint", "dbg_frames"])
        out = self._run()
        if not __debug__:
            return
        self.assertIn("-----Taint List Begin------", out)
        self.assertIn("[rax] (unresolved)", out)
        self.assertIn("Blame MI is here", out)
        self.assertIn("Taint List is empty", out)
        self.assertIn("  mov rax, 0", out)

    def test_unknown_mode(self) -> None:
        CONF.logging_modes = ["verbose"]
        with redirect_stdout(io.StringIO()):
            with self.assertRaises(SystemExit):
                update_logging_after_config_change()


if __name__ == '__main__':
    unittest.main()
