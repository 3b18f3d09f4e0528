"""Short conversation titles from the first exchange."""

from loguru import logger

from pincer.config.schema import ProfileConfig
from pincer.memory.conversations import ConversationStore
from pincer.providers.base import LLMProvider

TITLE_PROMPT = (
    "Summarize the topic of this conversation in at most 6 words. "
    "Reply with the title only, no quotes or punctuation at the end."
)
MAX_TITLE_LENGTH = 80


class TitleGenerator:
    def __init__(self, provider: LLMProvider, conversations: ConversationStore, profile: ProfileConfig):
        self.provider = provider
        self.conversations = conversations
        self.profile = profile

    async def generate(self, conversation_id: str, user_message: str, assistant_response: str) -> str | None:
        """Set the conversation title. Failures are logged, never raised."""
        try:
            messages = [
                {"role": "system", "content": TITLE_PROMPT},
                {
                    "role": "user",
                    "content": f"User: {user_message[:500]}\n\nAssistant: {assistant_response[:500]}",
                },
            ]
            raw = await self.provider.complete(self.profile, messages, max_tokens=30)
            title = raw.strip().strip("\"'`").strip()[:MAX_TITLE_LENGTH]
            if not title:
                return None
            self.conversations.update_title(conversation_id, title)
            logger.debug(f"Conversation {conversation_id} titled '{title}'")
            return title
        except Exception as e:
            logger.warning(f"Title generation failed for {conversation_id}: {e}")
            return None
