"""Search over tool definitions for the listTools built-in."""

import re

from toolrelay_server.tools.types import ToolDefinition

_TOKEN_SPLIT = re.compile(r"\W+")

NAME_MATCH_BOOST = 10.0
TERM_FREQUENCY_WEIGHT = 2.0
PARTIAL_MATCH_BONUS = 0.5


def _tokens(text: str) -> list[str]:
    return [token for token in _TOKEN_SPLIT.split(text.lower()) if token]


def score_tool(tool: ToolDefinition, query: str) -> float:
    """Keyword score of a tool for a query.

    A name containing the whole query gets a large boost; each query term
    then adds weight per exact token occurrence and a small bonus when any
    token merely contains it.
    """
    terms = _tokens(query)
    doc_tokens = _tokens(tool.name) + _tokens(tool.description or "")

    score = 0.0
    if query.lower() in tool.name.lower():
        score += NAME_MATCH_BOOST

    for term in terms:
        frequency = doc_tokens.count(term)
        if frequency:
            score += frequency * TERM_FREQUENCY_WEIGHT
        if any(term in token for token in doc_tokens):
            score += PARTIAL_MATCH_BONUS

    return score


def rank_tools(tools: list[ToolDefinition], query: str) -> list[ToolDefinition]:
    """Rank tools by keyword score, dropping non-matches.

    Ties keep registry order. A query without any word characters returns
    the tools unchanged.
    """
    if not _tokens(query):
        return list(tools)

    scored = [(score_tool(tool, query), tool) for tool in tools]
    scored = [(score, tool) for score, tool in scored if score > 0]
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [tool for _, tool in scored]


def filter_tools_regex(tools: list[ToolDefinition], pattern: str) -> list[ToolDefinition]:
    """Filter tools whose name or description matches a regex, ignoring case.

    Raises:
        ValueError: If the pattern does not compile
    """
    try:
        regex = re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        raise ValueError(f"Invalid Regex: {e}") from e

    return [
        tool
        for tool in tools
        if regex.search(tool.name) or regex.search(tool.description or "")
    ]
