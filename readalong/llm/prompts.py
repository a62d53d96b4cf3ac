"""Prompt template library for the narration preprocessing step.

Responsibilities:
- Centralize prompt construction for listen-ready text rewriting.
- Keep prompt wording deterministic so preprocessing cache keys stay stable.
"""

from __future__ import annotations


class PromptLibrary:
    """Build prompt strings for supported LLM tasks."""

    def preprocess_system_prompt(self) -> str:
        """Return the system prompt that prepares article text for speech."""

        return (
            "You prepare written articles for a text-to-speech voice. Make minimal but "
            "effective changes so the piece sounds natural when read aloud.\n"
            "Start with a short spoken introduction (under 10 seconds) that gives a "
            "conversational version of the title, the estimated listening time, and a "
            "casual sign-on.\n"
            "Then prepare the article:\n"
            "- Let the type of piece guide tone and pacing.\n"
            "- Break long or complex sentences into shorter ones.\n"
            "- Occasionally add light spoken transitions.\n"
            "- Keep paragraphs to 3-5 sentences separated by blank lines.\n"
            "Do not add facts, change the meaning, or use brackets or markup a speech "
            "engine cannot read. Return only the final ready-to-read text."
        )

    def preprocess_user_prompt(
        self,
        text: str,
        *,
        title: str | None = None,
        word_count: int | None = None,
    ) -> str:
        """Return the user prompt carrying the article and optional metadata."""

        header_lines: list[str] = []
        if title:
            header_lines.append(f"Title: {title}")
        if word_count is not None:
            header_lines.append(f"Word count: {word_count}")
        if not header_lines:
            return text
        return "\n".join(header_lines) + "\n\n" + text
