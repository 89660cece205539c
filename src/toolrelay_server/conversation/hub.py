"""Registry of the conversation loops of this process."""

import logging

from toolrelay_server.conversation.loop import ConversationContext, ConversationLoop

logger = logging.getLogger(__name__)


class ConversationHub:
    """Owns one ConversationLoop per chat id."""

    def __init__(self, context: ConversationContext):
        self.context = context
        self._loops: dict[str, ConversationLoop] = {}

    def get(self, chat_id: str) -> ConversationLoop:
        """Return the chat's loop, creating it on first use.

        Raises:
            FileNotFoundError: If the chat doesn't exist
        """
        loop = self._loops.get(chat_id)
        if loop is None:
            self.context.store.get_chat(chat_id)
            loop = ConversationLoop(chat_id, self.context)
            self._loops[chat_id] = loop
        return loop

    def find(self, chat_id: str) -> ConversationLoop | None:
        return self._loops.get(chat_id)

    async def discard(self, chat_id: str) -> None:
        """Stop and forget a chat's loop (the chat is being deleted)."""
        loop = self._loops.pop(chat_id, None)
        if loop is not None:
            await loop.stop()

    async def close(self) -> None:
        for chat_id in list(self._loops):
            await self.discard(chat_id)
        logger.debug("Conversation hub closed")
