"""Model-assisted summarization of aging conversation turns."""

import logging
from typing import List, Optional

from ..models.turns import USER, ConversationTurn, TextPart, extract_text, now_ms

logger = logging.getLogger(__name__)

MIN_TURNS_TO_COMPRESS = 6
FALLBACK_TURNS = 3
SUMMARY_PREFIX = "[Previous conversation summary: "
SUMMARY_INSTRUCTION = (
    "Summarize the following conversation history concisely while preserving key "
    "information, context, and important details. Keep the summary factual and comprehensive."
)
SUMMARY_CONFIG = {"temperature": 0.3, "top_p": 0.95}


class HistoryCompressor:
    """Collapses a batch of turns into one summary turn."""

    def __init__(self, gateway):
        self.gateway = gateway
        self.compressions = 0
        self.failures = 0

    async def summarize(
        self, turns: List[ConversationTurn], model: str
    ) -> Optional[ConversationTurn]:
        """Return a synthetic summary turn, or None when the model call fails."""
        transcript = "\n\n".join(
            f"{'User' if t.role == USER else 'Assistant'}: {extract_text(t)}" for t in turns
        )

        try:
            response = await self.gateway.generate_content(
                model,
                f"Summarize this conversation:\n\n{transcript}",
                system_instruction=SUMMARY_INSTRUCTION,
                generation_config=SUMMARY_CONFIG,
            )
            summary = (getattr(response, "text", None) or "").strip() or transcript[:500]
        except Exception as e:
            self.failures += 1
            logger.warning(f"Compression of {len(turns)} turns failed: {e}")
            return None

        self.compressions += 1
        logger.debug(f"Compressed {len(turns)} turns into {len(summary)} characters")
        return ConversationTurn(
            role=USER,
            content=[TextPart(f"{SUMMARY_PREFIX}{summary}]")],
            timestamp=now_ms(),
        )

    async def compress(self, turns: List[ConversationTurn], model: str) -> List[ConversationTurn]:
        if len(turns) < MIN_TURNS_TO_COMPRESS:
            return turns

        summary = await self.summarize(turns, model)
        if summary is None:
            logger.info(f"Keeping the last {FALLBACK_TURNS} of {len(turns)} turns")
            return turns[-FALLBACK_TURNS:]
        return [summary]
