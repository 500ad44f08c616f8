"""Generate a short session title from the user's first prompt.

Uses a lightweight Claude Agent SDK call with no tools. Unlike a
best-effort namer this is fallible on purpose: a failed title aborts
the session start, so errors surface as ``TitleGenerationError``.
"""
from __future__ import annotations

import asyncio
import logging
import re

from cowork.client.errors import TitleGenerationError

logger = logging.getLogger(__name__)

NAMING_PROMPT = (
    "Generate a short, descriptive title (3-7 words) for a coding session "
    "that starts with this user message. Return ONLY the title, nothing else. "
    "Use imperative form (e.g., 'Fix auth login bug', 'Add dark mode toggle'). "
    "Do not use quotes.\n\n"
    "User message: {message}"
)

MAX_TITLE_LENGTH = 60


def clean_title(raw: str) -> str:
    """Normalize model output into a single short title line."""
    lines = [line.strip() for line in raw.strip().splitlines() if line.strip()]
    if not lines:
        return ""
    title = lines[0]
    title = re.sub(r"^(?:title|session title)\s*:\s*", "", title, flags=re.IGNORECASE)
    title = title.strip().strip("\"'`").strip()
    title = re.sub(r"\s+", " ", title)
    if len(title) > MAX_TITLE_LENGTH:
        title = title[: MAX_TITLE_LENGTH - 3].rstrip() + "..."
    return title


async def _query_title(prompt: str, model: str) -> str:
    from claude_agent_sdk import ClaudeAgentOptions, query

    options = ClaudeAgentOptions(
        system_prompt="",
        allowed_tools=[],
        permission_mode="plan",
        model=model,
    )
    result_text = ""
    async for message in query(prompt=prompt, options=options):
        if hasattr(message, "result"):
            result_text = message.result or ""
    return result_text


async def generate_session_title(
    user_message: str,
    model: str = "claude-haiku-4-5",
    timeout: float = 15.0,
) -> str:
    """Return a title for *user_message* or raise ``TitleGenerationError``."""
    prompt = NAMING_PROMPT.format(message=user_message[:500])
    try:
        raw = await asyncio.wait_for(_query_title(prompt, model), timeout=timeout)
    except asyncio.TimeoutError as exc:
        logger.warning("Session title generation timed out after %.1fs", timeout)
        raise TitleGenerationError(f"timed out after {timeout:.0f}s") from exc
    except ImportError as exc:
        raise TitleGenerationError("claude-agent-sdk is not installed") from exc
    except Exception as exc:
        logger.warning("Session title generation failed", exc_info=True)
        raise TitleGenerationError(f"{type(exc).__name__}: {exc}") from exc

    title = clean_title(raw)
    if not title:
        raise TitleGenerationError("empty response")
    logger.debug("Generated session title %r", title)
    return title


def make_title_generator(model: str, timeout: float):
    """Bind model settings into a ``prompt -> title`` coroutine function."""
    async def _generate(prompt: str) -> str:
        return await generate_session_title(prompt, model=model, timeout=timeout)

    return _generate
