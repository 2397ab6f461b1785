"""Decision prompt rendering.

Uses LangChain's ChatPromptTemplate for variable injection, with the
template stored in ``templates/decision.yaml``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from langchain_core.prompts import ChatPromptTemplate

from chancery.prompts.loader import PromptLoader, PromptTemplate

if TYPE_CHECKING:
    from chancery.models.context import ContextSource, PerceivedFact, TaskContext
    from chancery.providers.base import Message

DEFAULT_SOURCE_LIMIT = 4
DEFAULT_FACT_LIMIT = 24

_ROLE_BY_TYPE = {"system": "system", "human": "user", "ai": "assistant"}

# Module-level loader for caching efficiency
_prompt_loader: PromptLoader | None = None


def _get_loader() -> PromptLoader:
    global _prompt_loader
    if _prompt_loader is None:
        _prompt_loader = PromptLoader()
    return _prompt_loader


def get_decision_template() -> PromptTemplate:
    """Load the decision template (cached)."""
    return _get_loader().load("decision")


def format_sources(sources: list[ContextSource], limit: int = DEFAULT_SOURCE_LIMIT) -> str:
    """Render up to ``limit`` sources as ``- title: excerpt`` lines."""
    lines = []
    for source in sources[:limit]:
        excerpt = source.excerpt.strip()
        lines.append(f"- {source.title}: {excerpt}" if excerpt else f"- {source.title}")
    return "\n".join(lines)


def _format_value(value: object) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def format_facts(facts: list[PerceivedFact], limit: int = DEFAULT_FACT_LIMIT) -> str:
    """Render up to ``limit`` perceived facts, one per line."""
    return "\n".join(
        f"- [{f.fact_id}] ({f.domain}, conf={f.confidence:g}): {f.statement} = "
        f"{_format_value(f.value)}"
        for f in facts[:limit]
    )


def _list_line(title: str, values: list[str], empty: str) -> str:
    return f"{title}: {', '.join(values)}" if values else f"{title}: {empty}"


def decision_variables(
    task_context: TaskContext,
    player_text: str,
    template: PromptTemplate | None = None,
) -> dict[str, str]:
    """Compute the template variables for a decision request."""
    template = template or get_decision_template()
    constraints = task_context.constraints
    source_limit = template.limits.get("sources", DEFAULT_SOURCE_LIMIT)
    fact_limit = template.limits.get("perceived_facts", DEFAULT_FACT_LIMIT)

    sources_text = format_sources(task_context.sources, source_limit)
    last_message = task_context.last_player_message()

    return {
        "task_prompt": task_context.prompt,
        "sources_block": f"Sources:\n{sources_text}\n\n" if sources_text else "",
        "allowed_text": _list_line(
            "Allowed action types",
            constraints.allowed_action_types,
            "(none specified; use the canonical catalog).",
        ),
        "suggested_text": _list_line(
            "Suggested action types", constraints.suggested_action_types, "(none specified)."
        ),
        "forbidden_text": _list_line(
            "Forbidden action types", constraints.forbidden_action_types, "(none specified)."
        ),
        "notes_text": (
            f"Constraint notes: {' | '.join(constraints.notes)}"
            if constraints.notes
            else "Constraint notes: (none)."
        ),
        "facts_text": format_facts(task_context.perceived_facts, fact_limit),
        "last_message_block": (
            f"Last player message:\n{last_message}\n\n" if last_message else ""
        ),
        "player_text": player_text,
    }


def build_decision_messages(
    task_context: TaskContext,
    player_text: str,
    *,
    json_only: bool = False,
) -> list[Message]:
    """Build the chat messages for a decision request.

    Args:
        task_context: Task being decided.
        player_text: The player's ruling.
        json_only: Prepend the plain-JSON instruction used by the retry tier.

    Returns:
        Messages ready for a ``DecisionProvider``.
    """
    template = get_decision_template()
    prompt = ChatPromptTemplate.from_messages(
        [("system", template.system), ("human", template.user)]
    )
    rendered = prompt.format_messages(**decision_variables(task_context, player_text, template))

    messages: list[Message] = []
    if json_only and template.json_only:
        messages.append({"role": "system", "content": template.json_only.strip()})
    for message in rendered:
        messages.append(
            {"role": _ROLE_BY_TYPE[message.type], "content": str(message.content).strip()}  # type: ignore[typeddict-item]
        )
    return messages
