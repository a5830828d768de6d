"""Implementation of Session Description Protocol (SDP)."""

from .assembler import *
from .attributes import *
from .common import *
from .media import *
from .session import *
from .time import *
from .tokenizer import *
