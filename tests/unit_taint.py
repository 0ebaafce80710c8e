"""
File: tests for the taint data structures (descriptor equality, address resolution, taint list)

Copyright (C) Microsoft Corporation
SPDX-License-Identifier: MIT
"""
# pylint: disable=missing-function-docstring
# pylint: disable=missing-class-docstring

import unittest
from typing import Optional

from blamer.arch.x86.asm_parser import X86AsmParser
from blamer.arch.x86.target_desc import X86TargetDesc
from blamer.crash_components.crash_trace import CrashFrame
from blamer.crash_components.instruction import MemoryOp, RegisterOp, ImmediateOp
from blamer.taint import TaintInfo, TaintList, AddressResolver

TARGET_DESC = X86TargetDesc()
PARSER = X86AsmParser(TARGET_DESC)
FRAME = CrashFrame("main", [], {"rbp": "0x7ffe1000", "rsp": "0x7ffe0ff0", "rax": "0x601000"})


def _operand(asm_operand: str):
    """ Parse a single operand by wrapping it into a dummy instruction """
    return PARSER.parse_line(f"mov rax, {asm_operand}").operands[1]


def _taint(asm_operand: str, frame: Optional[CrashFrame] = FRAME) -> TaintInfo:
    op = _operand(asm_operand)
    offset = op.displacement if isinstance(op, MemoryOp) else None
    taint = TaintInfo(op, offset)
    if frame is not None:
        AddressResolver(TARGET_DESC).resolve(taint, frame)
    return taint


class TaintInfoTest(unittest.TestCase):

    def test_concrete_addresses_compared_by_value(self) -> None:
        # both resolve to 0x7ffe0ff8
        a = _taint("qword ptr [rbp - 8]")
        b = _taint("qword ptr [rsp + 8]")
        self.assertTrue(a.is_concrete_memory)
        self.assertTrue(b.is_concrete_memory)
        self.assertEqual(a.concrete_address, 0x7ffe0ff8)
        self.assertEqual(a, b)

        c = _taint("qword ptr [rbp - 16]")
        self.assertNotEqual(a, c)

    def test_unresolved_compared_by_register(self) -> None:
        a = _taint("qword ptr [rax + 8]")
        b = _taint("qword ptr [rax + 16]")
        self.assertFalse(a.is_concrete_memory)
        self.assertEqual(a, b)
        self.assertEqual(a, _taint("rax"))
        self.assertEqual(a, _taint("eax"))
        self.assertNotEqual(a, _taint("qword ptr [rbx + 8]"))

    def test_mixed_resolution_compared_by_register(self) -> None:
        resolved = _taint("qword ptr [rbp - 8]")
        self.assertTrue(resolved.is_concrete_memory)
        self.assertEqual(resolved, _taint("rbp"))
        self.assertNotEqual(resolved, _taint("rsp"))

    def test_sub_registers(self) -> None:
        self.assertEqual(_taint("rax"), _taint("al"))
        self.assertEqual(_taint("r8"), _taint("r8d"))
        self.assertNotEqual(_taint("rax"), _taint("rcx"))

    def test_no_register_never_equal(self) -> None:
        empty = TaintInfo(None)
        self.assertNotEqual(empty, TaintInfo(None))
        self.assertNotEqual(empty, _taint("rax"))

        const = TaintInfo(ImmediateOp("0"))
        self.assertNotEqual(const, TaintInfo(ImmediateOp("0")))
        self.assertTrue(const.is_constant())
        self.assertIsNone(const.reg_id())

    def test_indexed_memory_has_no_register_identity(self) -> None:
        indexed = _taint("qword ptr [rbp + rcx*8 - 16]")
        self.assertIsNone(indexed.reg_id())
        self.assertNotEqual(indexed, _taint("qword ptr [rbp - 16]"))
        self.assertNotEqual(_taint("qword ptr [rbp - 16]"), indexed)
        self.assertNotEqual(indexed, _taint("rbp"))
        self.assertNotEqual(indexed, _taint("qword ptr [rbp + rcx*8 - 16]"))

    def test_str(self) -> None:
        self.assertEqual(str(_taint("qword ptr [rbp - 8]")), "mem addr: 0x7ffe0ff8")
        self.assertEqual(str(_taint("qword ptr [rcx + 8]")), "[rcx + 8] (unresolved)")
        self.assertEqual(str(_taint("rbx")), "rbx")


class AddressResolverTest(unittest.TestCase):

    def test_untrusted_base(self) -> None:
        # rax has a captured value, but it is not a stack or frame pointer
        taint = _taint("qword ptr [rax + 8]")
        self.assertFalse(taint.is_concrete_memory)
        self.assertEqual(taint.reg_id(), "A")

    def test_missing_register_value(self) -> None:
        frame = CrashFrame("main", [], {"rsp": "0x1000"})
        taint = _taint("qword ptr [rbp - 8]", frame)
        self.assertFalse(taint.is_concrete_memory)
        self.assertEqual(taint.reg_id(), "BP")

    def test_empty_register_value(self) -> None:
        frame = CrashFrame("main", [], {"rbp": ""})
        taint = _taint("qword ptr [rbp - 8]", frame)
        self.assertFalse(taint.is_concrete_memory)

    def test_wraps_to_pointer_width(self) -> None:
        frame = CrashFrame("main", [], {"rsp": "0x0"})
        taint = _taint("qword ptr [rsp - 8]", frame)
        self.assertTrue(taint.is_concrete_memory)
        self.assertEqual(taint.concrete_address, 0xfffffffffffffff8)

    def test_absolute_address(self) -> None:
        taint = _taint("dword ptr [0x601040]")
        self.assertTrue(taint.is_concrete_memory)
        self.assertEqual(taint.concrete_address, 0x601040)

    def test_indexed_address_unresolved(self) -> None:
        frame = CrashFrame("main", [], {"rbp": "0x7ffe1000", "rcx": "0x2"})
        taint = _taint("qword ptr [rbp + rcx*8 - 16]", frame)
        self.assertFalse(taint.is_concrete_memory)
        self.assertEqual(taint.concrete_address, 0)

        taint = _taint("dword ptr [8*rcx + 0x601040]", frame)
        self.assertFalse(taint.is_concrete_memory)

        taint = _taint("byte ptr [rsp + rax]", frame)
        self.assertFalse(taint.is_concrete_memory)

    def test_no_resolution_without_offset(self) -> None:
        reg = _taint("rbp")
        self.assertFalse(reg.is_concrete_memory)

        const = TaintInfo(ImmediateOp("8"), 8)
        AddressResolver(TARGET_DESC).resolve(const, FRAME)
        self.assertFalse(const.is_concrete_memory)

    def test_uppercase_register_names(self) -> None:
        frame = CrashFrame("main", [], {"RBP": "0x2000"})
        taint = _taint("qword ptr [rbp + 0x10]", frame)
        self.assertTrue(taint.is_concrete_memory)
        self.assertEqual(taint.concrete_address, 0x2010)


class TaintListTest(unittest.TestCase):

    def test_add_ignores_constants_and_empty(self) -> None:
        taints = TaintList()
        taints.add(TaintInfo(None))
        taints.add(TaintInfo(ImmediateOp("1")))
        self.assertTrue(taints.is_empty())

        taints.add(_taint("rax"))
        taints.add(_taint("rax"))
        self.assertEqual(len(taints), 2)

    def test_find_returns_stored_element(self) -> None:
        taints = TaintList()
        stored = _taint("qword ptr [rax + 8]")
        taints.add(_taint("rbx"))
        taints.add(stored)

        self.assertIs(taints.find(_taint("eax")), stored)
        self.assertIsNone(taints.find(_taint("rcx")))

    def test_remove_first_match(self) -> None:
        taints = TaintList()
        first = _taint("rax")
        second = _taint("eax")
        taints.add(first)
        taints.add(_taint("rbx"))
        taints.add(second)

        taints.remove(_taint("al"))
        self.assertEqual(len(taints), 2)
        self.assertIs(list(taints)[1], second)

    def test_remove_absent_is_fatal(self) -> None:
        taints = TaintList()
        taints.add(_taint("rax"))
        with self.assertRaises(AssertionError):
            taints.remove(_taint("rbx"))
        self.assertEqual(len(taints), 1)

    def test_register_operand_kinds(self) -> None:
        taint = _taint("qword ptr [rcx + 8]")
        self.assertIsInstance(taint.op, MemoryOp)
        self.assertIsInstance(_taint("rcx").op, RegisterOp)
        self.assertEqual(taint.reg_id(), _taint("rcx").reg_id())


if __name__ == '__main__':
    unittest.main()
