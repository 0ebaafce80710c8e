"""
File: x86-specific Configuration Options

Copyright (C) Microsoft Corporation
SPDX-License-Identifier: MIT
"""
from typing import Dict, List

# glibc startup routines: _start, __libc_start_main, __libc_csu_init, ...
startup_frame_prefix: str = "_"

_option_values: Dict[str, List[str]] = {}
