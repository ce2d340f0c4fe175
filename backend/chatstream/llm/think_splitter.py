"""
Reasoning/answer splitter.

WHAT: Separate <think>...</think> reasoning from the answer in streamed text
WHY: Reasoning models inline their scratchpad in the content channel
HOW: Recompute from the full accumulated text on every update (no carried state)
"""

import re

from .types import ParsedContent

THINK_OPEN = "<think>"
THINK_CLOSE = "</think>"

_THINK_BLOCK = re.compile(r"<think>(.*?)</think>", re.DOTALL)
_OPEN_THINK = re.compile(r"<think>(.*)\Z", re.DOTALL)


def parse_think_tags(content: str) -> ParsedContent:
    """
    Split accumulated content into reasoning and main segments.

    Complete blocks win: if any closed block exists, a later unterminated
    opener is left in the main content. Otherwise an unterminated opener
    means reasoning is still streaming. Without markers the content is
    returned verbatim.

    Args:
        content: Everything received so far

    Returns:
        ParsedContent for display
    """
    think_parts = [match.strip() for match in _THINK_BLOCK.findall(content)]
    if think_parts:
        return ParsedContent(
            think_content="\n\n".join(think_parts),
            main_content=_THINK_BLOCK.sub("", content).strip(),
            is_thinking_complete=True,
        )

    open_match = _OPEN_THINK.search(content)
    if open_match:
        return ParsedContent(
            think_content=open_match.group(1).strip(),
            main_content=content[:open_match.start()].strip(),
            is_thinking_complete=False,
        )

    return ParsedContent(think_content=None, main_content=content, is_thinking_complete=True)
