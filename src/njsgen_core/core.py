from __future__ import annotations

from ._core_base import *  # noqa: F401,F403
from ._core_types import *  # noqa: F401,F403
from ._core_context import *  # noqa: F401,F403
from ._core_codegen import *  # noqa: F401,F403
from ._core_converter import *  # noqa: F401,F403
from ._core_generator import *  # noqa: F401,F403
from ._core_merge import *  # noqa: F401,F403
