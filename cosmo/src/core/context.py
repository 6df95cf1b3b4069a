"""
Cosmo - ContextAssembler
=========================
Turns ranked search results into the grounding block of the system
prompt: persona instruction followed by one compact JSON record per
result, blank-line separated, in ranking order.

Raw vectors never reach the LLM — the embedding field is stripped from
every record.  No deduplication and no truncation: callers that need a
token budget limit ``k`` up front.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from cosmo.config.prompt_templates import EMPTY_CONTEXT_MARKER, render_system_prompt
from cosmo.src.database.models import SearchResult
from cosmo.src.utils.text_utils import serialize_record

_RECORD_SEPARATOR = "\n\n"


class ContextAssembler:
    """Builds the system-message text from retrieved records."""

    __slots__ = ("_instruction", "_vector_field")

    def __init__(self, settings: Any) -> None:
        self._instruction = render_system_prompt(settings)
        self._vector_field: str = settings.VECTOR_FIELD


    @property
    def instruction(self) -> str:
        return self._instruction


    def assemble(self, results: Sequence[SearchResult]) -> str:
        """Return the instruction followed by the serialized records."""
        if not results:
            return self._instruction + EMPTY_CONTEXT_MARKER

        # Insertion order mirrors the record as stored.
        blocks = [serialize_record(result.record, exclude=(self._vector_field,), sort_keys=False) for result in results]
        return self._instruction + _RECORD_SEPARATOR.join(blocks)
