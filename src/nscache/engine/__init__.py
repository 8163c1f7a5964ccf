"""Compiler engine interface and the reference engine."""

from ._engine import *
from ._reference import *
