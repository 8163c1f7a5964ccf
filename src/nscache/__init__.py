"""
nscache - Compiled namespace cache for self-hosted compilers

Sits between a host application and a compiler engine, answering the
engine's dependency requests from cached compiler output and filling the
cache from what the engine emits.
"""

__version__ = "0.1.0"


from ._error import *
from ._ident import *
from ._scan import *
from ._record import *
from ._cache import *
from ._loader import *
from . import engine
from ._compiler import *
