"""Context builder for assembling agent prompts."""

from typing import Any

from pincer.agent.persona import PersonaDocument
from pincer.memory.conversations import ConversationStore
from pincer.memory.facts import FactStore


class ContextBuilder:
    """
    Builds the ordered prompt for one turn.

    System entry first (optional profile override, persona, recalled facts),
    then recent history oldest first, then the new user message. Only reads
    from the stores.
    """

    def __init__(
        self,
        persona: PersonaDocument,
        facts: FactStore,
        conversations: ConversationStore,
        fact_limit: int = 5,
    ):
        self.persona = persona
        self.facts = facts
        self.conversations = conversations
        self.fact_limit = fact_limit

    def build_system_prompt(self, user_message: str, system_prompt_override: str | None = None) -> str:
        prompt = ""
        if system_prompt_override:
            prompt = system_prompt_override + "\n\n"
        prompt += self.persona.get_content()

        facts = self.facts.search(user_message, self.fact_limit)
        if facts:
            prompt += "\n\n## Remembered Facts\n"
            prompt += "".join(f"- [{f.category}] {f.content}\n" for f in facts)
        return prompt

    def build(
        self,
        conversation_id: str,
        user_message: str,
        history_limit: int = 20,
        system_prompt_override: str | None = None,
        exclude_turn_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Build the message list for the model.

        Args:
            conversation_id: Conversation whose history is included.
            user_message: The new utterance, always last.
            history_limit: Number of prior turns to include.
            system_prompt_override: Optional per-profile prefix for the system entry.
            exclude_turn_id: Turn already persisted for this utterance, left out of history.
        """
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": self.build_system_prompt(user_message, system_prompt_override)}
        ]

        fetch = history_limit + 1 if exclude_turn_id else history_limit
        history = [
            t for t in self.conversations.get_messages(conversation_id, fetch)
            if t.id != exclude_turn_id
        ]
        for turn in history[-history_limit:] if history_limit > 0 else []:
            messages.append({"role": turn.role, "content": turn.content})

        messages.append({"role": "user", "content": user_message})
        return messages
