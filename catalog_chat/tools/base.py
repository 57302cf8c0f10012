from __future__ import annotations

"""Common contract for the capabilities a routed turn can run ("tools").

Each ToolNode answers one routed intent with a complete text reply. The
dispatcher calls :py:meth:`run_tool` with the routed parameters.
"""

import logging
import time
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class ToolNode(ABC):
    """Abstract base class for tools.

    Sub-classes **must** override `tool_name`, `tool_desc` and implement
    :py:meth:`exec`.
    """

    tool_name: str = ""
    tool_desc: str = ""

    @abstractmethod
    async def exec(self, **kwargs) -> str:  # noqa: D401  (imperative style)
        """Perform the actual work and return the reply text."""

    async def run_tool(self, **kwargs) -> str:
        started = time.monotonic()
        result = await self.exec(**kwargs)
        logger.info(
            "Tool %s finished in %.2fs (%d chars)",
            self.tool_name,
            time.monotonic() - started,
            len(result),
        )
        return result
