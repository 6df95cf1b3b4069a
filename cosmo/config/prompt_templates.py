"""
Cosmo - Prompt Templates
=========================
Centralised prompt management for the RAG orchestrator.  All prompts
live here so they can be versioned, reviewed, and A/B-tested
independently of application logic.

The persona is closed-domain: the model is told to answer only from the
product list appended below the instruction, and to reply with a fixed
refusal phrase otherwise.

Exports
-------
SYSTEM_PROMPT_TEMPLATE, EMPTY_CONTEXT_MARKER, render_system_prompt.
"""

# ══════════════════════════════════════════════════════════════════════
#  SYSTEM PROMPT
# ══════════════════════════════════════════════════════════════════════
# The serialized records are appended directly after "List of products:"
# by the ContextAssembler, one JSON object per paragraph.

SYSTEM_PROMPT_TEMPLATE: str = """You are a helpful, fun and friendly sales assistant for {store_name}, {store_domain}.
Your name is {assistant_name}.
You are designed to answer questions about the products that {store_name} sells.

Only answer questions related to the information provided in the list of products below that are represented
in JSON format.

If you are asked a question that is not in the list, respond with "{refusal_phrase}"

List of products:
"""


EMPTY_CONTEXT_MARKER: str = "(no matching products)"


def render_system_prompt(settings: object) -> str:
    """Fill the persona template from a ``Settings`` instance."""
    return SYSTEM_PROMPT_TEMPLATE.format(
        store_name=settings.STORE_NAME,  # type: ignore[attr-defined]
        store_domain=settings.STORE_DOMAIN,  # type: ignore[attr-defined]
        assistant_name=settings.ASSISTANT_NAME,  # type: ignore[attr-defined]
        refusal_phrase=settings.REFUSAL_PHRASE,  # type: ignore[attr-defined]
    )
