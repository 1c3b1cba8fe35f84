import logging
import threading
from typing import Optional

from sts_agent.execution import Message
from sts_agent.model import ModelAdaptor

logger = logging.getLogger(__name__)

MAX_HISTORY_MESSAGES = 16  # 8 turns
KEEP_RECENT_MESSAGES = 4

SUMMARY_INSTRUCTION = (
    "Summarize the following conversation concisely. "
    "Capture key topics discussed, important information shared, and any decisions made. "
    "Keep it under 200 words. Output only the summary, no extra text."
)


class ConversationStore:
    """Chat history shared across runs, with a rolling summary.

    One lock guards the message list and the summary. It is never held while
    the model is summarizing, so readers are not blocked on the network.
    """

    def __init__(
        self,
        model: ModelAdaptor,
        max_messages: int = MAX_HISTORY_MESSAGES,
        keep_recent: int = KEEP_RECENT_MESSAGES,
    ):
        self.model = model
        self.max_messages = max_messages
        self.keep_recent = keep_recent
        self._lock = threading.Lock()
        self._messages: list[Message] = []
        self._summary: Optional[str] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)

    @property
    def summary(self) -> Optional[str]:
        with self._lock:
            return self._summary

    def append(self, user_message: Message, assistant_message: Message) -> bool:
        """Store one turn. Returns True when compaction is due."""
        with self._lock:
            self._messages.append(user_message)
            self._messages.append(assistant_message)
            size = len(self._messages)
        logger.info("Chat history size: %d messages", size)
        return size >= self.max_messages

    def snapshot(self) -> tuple[Optional[str], list[Message]]:
        with self._lock:
            return self._summary, list(self._messages)

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()
            self._summary = None
        logger.info("Chat history cleared")

    async def compact(self) -> bool:
        """Fold everything but the most recent messages into the summary.

        Returns False without doing anything when history is too short.
        History is trimmed before the model is asked for the summary; if
        summarizing fails, the trimmed history and the previous summary stay.
        """
        with self._lock:
            if len(self._messages) < self.keep_recent * 2:
                return False

            logger.info("Summarizing chat history (%d messages)...", len(self._messages))
            split = len(self._messages) - self.keep_recent
            transcript = self._transcript(self._summary, self._messages[:split])
            self._messages = self._messages[split:]
            kept = len(self._messages)

        try:
            summary = await self.model.complete(
                [Message.system(SUMMARY_INSTRUCTION), Message.user(transcript)]
            )
        except Exception:
            logger.error("Failed to summarize history", exc_info=True)
            return False

        with self._lock:
            self._summary = summary
        logger.info("Summarization complete. Kept %d recent messages.", kept)
        return True

    @staticmethod
    def _transcript(summary: Optional[str], messages: list[Message]) -> str:
        lines = []
        if summary is not None:
            lines.append(f"Previous summary:\n{summary}\n")
        lines.append("Recent conversation:")
        for msg in messages:
            speaker = "User" if msg.role == "user" else "AI"
            lines.append(f"{speaker}: {msg.content or ''}")
        return "\n".join(lines) + "\n"
