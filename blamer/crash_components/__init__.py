"""
File: Module containing a collection of classes that represent components
      of a crash trace (frames, instructions, and operands).

Copyright (C) Microsoft Corporation
SPDX-License-Identifier: MIT
"""
# flake8: noqa
# pylint: skip-file

from .instruction import *
from .crash_trace import *
