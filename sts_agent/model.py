import logging
from typing import AsyncIterator, Callable, Optional

from sts_agent.exceptions import STSAgentError
from sts_agent.execution import ChatResponse, Message
from sts_agent.tools import Tool

logger = logging.getLogger(__name__)


class ModelAdaptor:
    async def complete(self, messages: list[Message], **kwargs) -> str:
        """Single completion without tools. Returns the assistant text."""
        raise NotImplementedError

    async def complete_with_tools(
        self,
        messages: list[Message],
        tools: list[Tool],
        **kwargs,
    ) -> ChatResponse:
        """Call the model with messages and available tools."""
        raise NotImplementedError

    def stream(self, messages: list[Message], **kwargs) -> AsyncIterator[str]:
        """Yield text deltas of a streamed completion."""
        raise NotImplementedError

    async def stream_complete(
        self,
        messages: list[Message],
        on_chunk: Callable[[str], None],
        on_done: Callable[[Optional[BaseException]], None],
        **kwargs,
    ) -> None:
        """Stream a completion into callbacks.

        ``on_chunk`` receives each text delta. ``on_done`` is called exactly
        once, with ``None`` on success or the error that ended the stream.
        Cancellation is reported as the ``CancelledError`` and then re-raised.
        Callbacks run on the event loop thread and must not block.
        """
        try:
            async for chunk in self.stream(messages, **kwargs):
                on_chunk(chunk)
        except STSAgentError as e:
            logger.error("Stream failed: %s", e)
            on_done(e)
            return
        except BaseException as e:
            on_done(e)
            raise
        on_done(None)
