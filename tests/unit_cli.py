"""
File: end-to-end tests of the command-line interface

Copyright (C) Microsoft Corporation
SPDX-License-Identifier: MIT
"""
# pylint: disable=missing-function-docstring
# pylint: disable=missing-class-docstring

import io
import os
import tempfile
import unittest
from contextlib import redirect_stdout
from copy import deepcopy

from blamer.cli import main
from blamer.config import CONF, Conf
from blamer.logs import update_logging_after_config_change

NULL_DEREF = """
frames:
  - function: use_ptr
    registers: {rbp: "0x7ffe0fc0", rsp: "0x7ffe0fb0"}
    instructions:
      - push rbp
      - mov rbp, rsp
      - mov qword ptr [rbp - 8], rdi
      - mov rax, qword ptr [rbp - 8]
      - asm: mov dword ptr [rax], 1
        crash: true
  - function: main
    registers: {rbp: "0x7ffe1000", rsp: "0x7ffe0fd0"}
    instructions:
      - push rbp
      - mov rbp, rsp
      - asm: mov qword ptr [rbp - 16], 0
        file: null_deref.c
        line: 9
      - mov rdi, qword ptr [rbp - 16]
      - asm: call use_ptr
        crash: true
  - function: __libc_start_main
    instructions: ~
"""

UNRESOLVED = """
frames:
  - function: main
    instructions:
      - push rbp
      - mov rax, rdi
      - asm: mov dword ptr [rax], 1
        crash: true
"""


class CLITest(unittest.TestCase):
    _prev_conf: Conf

    def setUp(self) -> None:
        self._prev_conf = deepcopy(CONF)
        self._tmp_dir = tempfile.TemporaryDirectory()

    def tearDown(self) -> None:
        self._tmp_dir.cleanup()
        for attr in list(CONF.__dict__):
            if attr not in self._prev_conf.__dict__:
                delattr(CONF, attr)
        for attr, value in self._prev_conf.__dict__.items():
            setattr(CONF, attr, value)
        update_logging_after_config_change()

    def _write(self, name: str, content: str) -> str:
        path = os.path.join(self._tmp_dir.name, name)
        with open(path, "w") as f:
            f.write(content)
        return path

    def _main(self, *args: str):
        buf = io.StringIO()
        with redirect_stdout(buf):
            exit_code = main(list(args))
        return exit_code, buf.getvalue()

    def test_root_cause_found(self) -> None:
        trace = self._write("null_deref.yaml", NULL_DEREF)
        exit_code, out = self._main("analyse", "-t", trace)
        self.assertEqual(exit_code, 0)
        self.assertIn("Blame Function is main", out)
        self.assertIn("At Line Number 9, from file null_deref.c", out)

    def test_no_root_cause(self) -> None:
        trace = self._write("unresolved.yaml", UNRESOLVED)
        exit_code, out = self._main("analyse", "-t", trace)
        self.assertEqual(exit_code, 1)
        self.assertNotIn("Blame Function", out)

    def test_config_and_stop_policy(self) -> None:
        config = self._write("conf.yaml", "logging_modes: []\n")
        trace = self._write("null_deref.yaml", NULL_DEREF)
        exit_code, out = self._main("analyse", "-t", trace, "-c", config,
                                    "--stop-policy", "empty_taint")
        self.assertEqual(exit_code, 0)
        self.assertEqual(CONF.stop_policy, "empty_taint")
        self.assertNotIn("INFO", out)

    def test_missing_files(self) -> None:
        missing = os.path.join(self._tmp_dir.name, "missing.yaml")
        exit_code, out = self._main("analyse", "-t", missing)
        self.assertEqual(exit_code, 1)
        self.assertIn("does not exist", out)

        trace = self._write("null_deref.yaml", NULL_DEREF)
        exit_code, out = self._main("analyse", "-t", trace, "-c", missing)
        self.assertEqual(exit_code, 1)
        self.assertIn("does not exist", out)


if __name__ == '__main__':
    unittest.main()
