"""Infrastructure layer: optional warm-tone rewrite of outgoing replies."""
import logging
from abc import ABC, abstractmethod
from typing import Optional

import anthropic

logger = logging.getLogger(__name__)

REWRITE_PROMPT = (
    "You are a rewriting assistant.\n\n"
    "Your ONLY job is to rewrite the given text to sound warm, calm and easy to "
    "understand for an elderly WhatsApp user.\n\n"
    "STRICT RULES:\n"
    "- Do NOT change the meaning\n"
    "- Do NOT add or remove facts, names or dates\n"
    "- Do NOT give advice or ask questions that are not already in the text\n"
    "- Use simple English and short sentences\n"
    "- At most one emoji\n\n"
    "Reply with the rewritten text only."
)


class ToneRewriter(ABC):
    @abstractmethod
    async def rewrite(self, text: str) -> str:
        """Return a friendlier version of text, or text itself. Must never raise."""
        pass


class PassthroughRewriter(ToneRewriter):
    async def rewrite(self, text: str) -> str:
        return text


class AnthropicToneRewriter(ToneRewriter):
    """Rewrites with Claude; any failure returns the original text."""

    def __init__(self, api_key: Optional[str] = None, model: str = "claude-3-5-haiku-20241022",
                 client=None, max_tokens: int = 400):
        self.model = model
        self.max_tokens = max_tokens
        self.client = client or anthropic.AsyncAnthropic(api_key=api_key, max_retries=0)

    async def rewrite(self, text: str) -> str:
        if not text or not text.strip():
            return text
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=0.2,
                system=REWRITE_PROMPT,
                messages=[{"role": "user", "content": text}],
            )
            rewritten = "".join(
                block.text for block in response.content if getattr(block, "type", None) == "text"
            ).strip()
            if not rewritten:
                logger.warning("[REWRITE] Empty rewrite, keeping original text")
                return text
            logger.info(f"[REWRITE] {text[:40]!r} -> {rewritten[:40]!r}")
            return rewritten
        except Exception as e:
            logger.error(f"[REWRITE] ❌ Rewrite failed, using original text: {e}")
            return text
