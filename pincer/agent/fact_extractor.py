"""Background extraction of durable facts from a finished exchange."""

import json

from loguru import logger

from pincer.config.schema import ProfileConfig
from pincer.memory.facts import FactStore
from pincer.providers.base import LLMProvider

EXTRACT_PROMPT = """You are a fact extraction system. Given a conversation exchange, extract any durable facts worth remembering about the user. These include:
- Personal preferences (favorite color, food, etc.)
- Biographical info (name, location, job, etc.)
- Project details they mention
- Explicit instructions ("always do X", "never do Y")

Return a JSON array of objects with "content" and "category" fields.
Categories: preference, biographical, project, instruction, general

If no facts are worth extracting, return an empty array: []

ONLY return valid JSON, nothing else."""

CATEGORIES = {"preference", "biographical", "project", "instruction", "general"}


class FactExtractor:
    """Asks a lightweight model for facts and stores them. Never raises."""

    def __init__(self, provider: LLMProvider, facts: FactStore, profile: ProfileConfig):
        self.provider = provider
        self.facts = facts
        self.profile = profile

    async def extract(self, user_message: str, assistant_response: str) -> int:
        """Returns the number of facts stored; 0 on any failure."""
        try:
            messages = [
                {"role": "system", "content": EXTRACT_PROMPT},
                {
                    "role": "user",
                    "content": (
                        f'User said: "{user_message}"\n\n'
                        f'Assistant responded: "{assistant_response[:500]}"'
                    ),
                },
            ]
            text = await self.provider.complete(self.profile, messages, max_tokens=500)
            parsed = json.loads(_strip_fences(text))
            if not isinstance(parsed, list):
                return 0

            stored = 0
            for item in parsed:
                if not isinstance(item, dict):
                    continue
                content = item.get("content")
                if not isinstance(content, str) or not content.strip():
                    continue
                category = item.get("category")
                if category not in CATEGORIES:
                    category = "general"
                self.facts.add(content.strip(), category, source="auto-extracted")
                logger.info(f"Fact extracted [{category}]: {content}")
                stored += 1
            return stored
        except Exception as e:
            logger.debug(f"Fact extraction failed (non-critical): {e}")
            return 0


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()
