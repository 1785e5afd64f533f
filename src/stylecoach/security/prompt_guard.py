"""
Prompt Guard - keep writer text from breaking the resolution prompts.

The text under review is pasted verbatim into every stage prompt, so it is
scanned and cleaned before it goes out. Nothing here rewrites the
writer's prose: detection only logs, sanitization only strips null bytes.

Two functions:
  detect_injection_attempt() -- Scans for known injection patterns (logs, doesn't block)
  sanitize_for_prompt()      -- Null byte removal

Reference: OWASP LLM Top 10 (2025) - LLM01: Prompt Injection
"""

import logging
import re

logger = logging.getLogger(__name__)

# Chat-template markers and instruction overrides seen in pasted drafts
INJECTION_PATTERNS = [
    r"ignore\s+(all\s+)?previous\s+instructions",
    r"ignore\s+(all\s+)?(the\s+)?style\s+rules",
    r"you\s+are\s+now\s+a",
    r"forget\s+(all\s+)?(your|previous)\s+instructions",
    r"return\s+only\s+(an\s+)?empty\s+(json\s+)?array",
    r"<\|im_start\|>",
    r"<\|im_end\|>",
    r"\[INST\]",
    r"\[/INST\]",
    r"<\|system\|>",
    r"<\|assistant\|>",
]


def detect_injection_attempt(text: str) -> list[str]:
    """
    Detect potential prompt injection patterns in text sent for review.

    Returns list of matched patterns (empty = clean). Never blocks: fiction
    legitimately contains lines like "forget your instructions", so the
    caller only logs the finding.
    """
    if not text:
        return []

    findings = [p for p in INJECTION_PATTERNS if re.search(p, text, re.IGNORECASE)]

    if findings:
        logger.warning(
            f"[PromptGuard] {len(findings)} injection-like pattern(s) "
            f"in text under review ({len(text)} chars)"
        )

    return findings


def sanitize_for_prompt(content: str, strip_null: bool = True) -> str:
    """
    Sanitize content for inclusion in an LLM prompt.

    Content is never shortened here. Length is checked on the text under
    review before a prompt is built, and on the whole prompt by the client.

    Args:
        content: Raw prompt content
        strip_null: Whether to remove null bytes

    Returns:
        Sanitized content string
    """
    if not content:
        return ""

    if strip_null:
        content = content.replace("\x00", "")

    return content
