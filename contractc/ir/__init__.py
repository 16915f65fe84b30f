"""Typed program IR and its JSON loader."""

from .nodes import *
from .loader import IRLoader, load_file
