"""
Renderer boundary.

The engine never lays out content itself. It tells a rendering surface which
chapter to show and where to scroll; the surface reports page counts back.
"""

import logging
from typing import Protocol

from ..models.reader_responses import RendererCommand

logger = logging.getLogger(__name__)


class Renderer(Protocol):
    def open_content(self, uri: str) -> None: ...

    def scroll_to_page(self, page_index: int) -> None: ...

    def scroll_to_fragment(self, fragment: str) -> None: ...


class CommandQueueRenderer:
    """
    Renderer that records commands for a remote surface to fetch.

    Used when the rendering surface is an HTTP client: every API response
    drains the queue and the client executes the commands in order.
    """

    def __init__(self):
        self._commands: list[RendererCommand] = []

    def open_content(self, uri: str) -> None:
        self._commands.append(RendererCommand(command="open_content", uri=uri))

    def scroll_to_page(self, page_index: int) -> None:
        self._commands.append(
            RendererCommand(command="scroll_to_page", page_index=page_index)
        )

    def scroll_to_fragment(self, fragment: str) -> None:
        self._commands.append(
            RendererCommand(command="scroll_to_fragment", fragment=fragment)
        )

    def drain(self) -> list[RendererCommand]:
        commands, self._commands = self._commands, []
        if commands:
            logger.debug(f"Draining {len(commands)} renderer commands")
        return commands
