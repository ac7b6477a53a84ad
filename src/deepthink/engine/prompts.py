"""
Prompt generation for experts and synthesis.

Prompts combine:
- The user's query
- Search results from the current round's research
- Attached file context, if the client sent one
- The previous round's draft answer (rounds 2+)
"""

import logging
from collections.abc import Iterable

from ..config import ExpertConfig
from ..search.base import SearchResult
from .state import ExpertResult, RunSnapshot

logger = logging.getLogger(__name__)

SNIPPET_CHAR_LIMIT = 500


def format_search_results(results: Iterable[SearchResult] | None) -> str:
    """Render search results as a numbered source list."""
    if results is None:
        return "_Search was unavailable for this round._"

    lines = []
    for i, result in enumerate(results, 1):
        snippet = result.snippet.strip().replace("\n", " ")
        if len(snippet) > SNIPPET_CHAR_LIMIT:
            snippet = snippet[:SNIPPET_CHAR_LIMIT] + "..."
        lines.append(f"[{i}] {result.title}\n    {result.url}\n    {snippet}")

    return "\n".join(lines) if lines else "_No search results found._"


def _context_sections(snapshot: RunSnapshot) -> str:
    sections = [f"## Search Results\n\n{format_search_results(snapshot.search_results)}"]

    if snapshot.file_context:
        sections.append(f"## Attached File Context\n\n{snapshot.file_context}")

    if snapshot.draft is not None:
        sections.append(
            f"## Draft Answer From Round {snapshot.draft.round}\n\n"
            f"{snapshot.draft.content}\n\n"
            "Improve on this draft: fix errors, fill gaps, and drop anything unsupported."
        )

    return "\n\n".join(sections)


def generate_expert_prompt(expert: ExpertConfig, snapshot: RunSnapshot) -> tuple[str, str]:
    """
    Build system and user prompts for one expert.

    Returns:
        (system_prompt, user_prompt)
    """
    system_prompt = f"""You are {expert.name}, one of several independent experts answering the same question.

{expert.instructions}

Work independently. Cite search results by their [number] when you rely on them.
Be direct: give your best answer with the reasoning that supports it."""

    user_prompt = f"""# Question

{snapshot.query}

{_context_sections(snapshot)}

# Your Task

Answer the question from your perspective as {expert.name}."""

    return system_prompt, user_prompt


def _format_expert_outputs(experts: Iterable[ExpertResult]) -> str:
    formatted = []
    for result in experts:
        if result.ok:
            formatted.append(f"## {result.name} ({result.model})\n\n{result.content}")
        else:
            formatted.append(f"## {result.name}\n\n_Unavailable: {result.error}_")
    return "\n\n---\n\n".join(formatted)


def generate_synthesis_prompt(snapshot: RunSnapshot, force_final: bool) -> tuple[str, str]:
    """
    Build system and user prompts for the synthesis node.

    The model is asked for a JSON object so the engine can tell a final
    answer from a provisional one. When ``force_final`` is set the model is
    told no further rounds will run.

    Returns:
        (system_prompt, user_prompt)
    """
    system_prompt = """You are the lead synthesizer. Several experts answered the same question independently.
Combine their work into one answer that is correct, complete, and well supported.

- Where experts agree, state the shared conclusion confidently.
- Where they disagree, weigh the evidence and say which view holds up and why.
- Keep unique insights that are well supported; drop unsupported claims.

Respond with a single JSON object:
{"answer": "<the full answer in markdown>", "final": true|false, "follow_up_query": "<search query or null>"}"""

    if force_final:
        round_instruction = (
            "This is the last round. Set \"final\" to true and give the best answer possible."
        )
    else:
        round_instruction = (
            "Set \"final\" to true if the answer is complete and well supported. "
            "Set it to false if another round of research would materially improve it, "
            "and give the web search query that round should run in \"follow_up_query\"."
        )

    user_prompt = f"""# Question

{snapshot.query}

# Expert Answers (round {snapshot.round} of {snapshot.max_rounds})

{_format_expert_outputs(snapshot.experts_output.values())}

{_context_sections(snapshot)}

# Your Task

{round_instruction}"""

    return system_prompt, user_prompt
