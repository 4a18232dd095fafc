"""Mock model gateway for local development and tests without API calls.

Replies are canned but depend on the prompt, so the conversation flow
(greetings, questions about uploaded files, practice questions) can be
exercised end to end.
"""

import logging
import re

logger = logging.getLogger(__name__)

GREETING_PATTERNS = [
    r"^(hi|hello|hey|greetings|good\s+(morning|afternoon|evening))[\s!.,]*$",
]


class MockModelGateway:
    """Provides predictable replies for testing."""

    def __init__(self):
        self.calls: list[tuple[str, str]] = []

    @staticmethod
    def _last_user_turn(prompt: str) -> str:
        """Find the latest USER turn in a rendered context window."""
        matches = list(re.finditer(r"^USER: (.*)$", prompt, re.MULTILINE))
        if not matches:
            return prompt.strip()
        return matches[-1].group(1).strip()

    @staticmethod
    def _detect_intent(message: str, prompt: str) -> str:
        for pattern in GREETING_PATTERNS:
            if re.search(pattern, message, re.IGNORECASE):
                return "greeting"
        if "--- Extracted from" in prompt:
            return "document"
        return "general"

    async def complete(self, instructions: str, prompt: str) -> str:
        self.calls.append((instructions, prompt))
        message = self._last_user_turn(prompt)
        intent = self._detect_intent(message, prompt)
        logger.info(f"Mock model: detected intent '{intent}' from prompt")

        if intent == "greeting":
            return "Hello! What part of your coursework would you like to work through today?"

        truncated = message[:100] + "..." if len(message) > 100 else message
        if intent == "document":
            text = f"I read the material you shared. Here's an explanation for: {truncated}"
        else:
            text = f"Let's work through this step by step: {truncated}"

        if "practice questions" in instructions:
            text += "\n\nPractice questions:\n1. Can you restate the main idea?\n2. Can you apply it to a new example?"
        return text
