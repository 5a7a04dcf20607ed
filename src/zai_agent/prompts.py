"""System prompt presets."""

import logging
from dataclasses import dataclass
from typing import Optional, Union

logger = logging.getLogger(__name__)

SOFTWARE_ENGINEER_PROMPT = """You are an expert software developer with deep knowledge of multiple programming languages, frameworks, and best practices.

Your role is to help users with coding tasks, including:
- Writing, reviewing, and refactoring code
- Debugging and fixing issues
- Architecting software solutions
- Explaining technical concepts
- Following project-specific conventions and patterns

When writing code:
1. Follow existing code style and conventions
2. Write clean, maintainable, and well-documented code
3. Consider performance, security, and scalability
4. Add appropriate error handling
5. Use meaningful variable and function names

When debugging:
1. Analyze problem systematically
2. Identify root cause
3. Propose and implement a fix
4. Verify solution works
5. Explain what went wrong and how to prevent similar issues

Be thorough but concise. Focus on delivering working solutions."""

PRESETS = {
    "software_engineer": SOFTWARE_ENGINEER_PROMPT,
}


@dataclass(frozen=True)
class SystemPromptPreset:
    """A named preset with optional text appended after a blank line."""

    preset: str
    append: Optional[str] = None

    def resolve(self) -> str:
        text = PRESETS.get(self.preset)
        if text is None:
            logger.warning("Unknown system prompt preset: %s", self.preset)
            text = ""
        if self.append:
            text += "\n\n" + self.append
        return text


SystemPrompt = Union[str, SystemPromptPreset]


def resolve_system_prompt(system_prompt: Optional[SystemPrompt]) -> Optional[str]:
    """Return the system prompt text, or None when no system prompt was given."""
    if system_prompt is None:
        return None
    if isinstance(system_prompt, SystemPromptPreset):
        return system_prompt.resolve()
    return system_prompt
