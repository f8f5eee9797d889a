"""
restcore version info
"""

import collections as _collections
from typing import Tuple as _Tuple

from . import __version__

_ProjectVersion = _collections.namedtuple("_ProjectVersion", ("major", "minor", "micro"))
_ProjectVersion.__doc__ = "Tuple defining the project version"

PROJECT_VERSION: str = __version__
PROJECT_VERSION_INFO: _Tuple[int, int, int] = _ProjectVersion(*map(int, PROJECT_VERSION.split(".")))

API_VERSIONS: _Tuple[int, ...] = (1, 2)
LATEST_API_VERSION: int = max(API_VERSIONS)
