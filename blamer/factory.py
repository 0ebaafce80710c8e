"""
File: Configuration factory; constructs objects based on the configuration options.

Copyright (C) Microsoft Corporation
SPDX-License-Identifier: MIT
"""
from __future__ import annotations
from typing import Dict, Type, Any, Optional, TYPE_CHECKING

from .analysis import TaintAnalysis
from .arch.x86 import asm_parser as x86_asm_parser, target_desc as x86_target_desc
from .config import CONF
from .trace_loader import TraceLoader

if TYPE_CHECKING:
    from .asm_parser import AsmParser
    from .interfaces import AnalysisObserver
    from .target_desc import TargetDesc


class FactoryException(SystemExit):
    """ Exception raised by the factory functions """

    def __init__(self, options: Dict[str, Type[Any]], key: str, conf_option_name: str) -> None:
        super().__init__(
            f"ERROR: unknown value `{key}` of `{conf_option_name}` configuration option.\n"
            "  Available options are:\n  - " + "\n  - ".join(options.keys()))


# ==================================================================================================
# Common enumerations
# ==================================================================================================
_TARGET_DESC: Dict[str, Type[TargetDesc]] = {
    "x86-64": x86_target_desc.X86TargetDesc,
}

_ASM_PARSERS: Dict[str, Type[AsmParser]] = {
    "x86-64": x86_asm_parser.X86AsmParser,
}


# ==================================================================================================
# Construction
# ==================================================================================================
def get_target_desc() -> TargetDesc:
    """ Construct the target description of the configured instruction set """
    if CONF.instruction_set not in _TARGET_DESC:
        raise FactoryException(_TARGET_DESC, CONF.instruction_set, "instruction_set")
    return _TARGET_DESC[CONF.instruction_set]()


def get_asm_parser(target_desc: TargetDesc) -> AsmParser:
    """ Construct the parser of disassembled instructions of the configured instruction set """
    if CONF.instruction_set not in _ASM_PARSERS:
        raise FactoryException(_ASM_PARSERS, CONF.instruction_set, "instruction_set")
    return _ASM_PARSERS[CONF.instruction_set](target_desc)


def get_trace_loader(target_desc: TargetDesc) -> TraceLoader:
    """ Construct a loader of crash traces """
    return TraceLoader(get_asm_parser(target_desc))


def get_analysis(target_desc: TargetDesc,
                 observer: Optional[AnalysisObserver] = None) -> TaintAnalysis:
    """ Construct the taint analysis according to the configuration """
    return TaintAnalysis(target_desc, observer)
