# flake8: noqa
# pylint: skip-file

from .config import *
from .crash_components import *
from .target_desc import *
from .asm_parser import *
from .taint import *
from .interfaces import *
from .analysis import *
from .trace_loader import *
from .logs import *
from .factory import *
from .cli import *

from .arch.x86.target_desc import *
from .arch.x86.asm_parser import *

__version__ = "1.0.0"
