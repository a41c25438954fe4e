"""Shared Pydantic types and validators for reuse across models.

Centralises key constraints and the Literal enums for strategies and
directions so every model and service speaks the same language.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, get_args

from pydantic import AfterValidator, BeforeValidator, Field

# ---------------------------------------------------------------------------
# String constraints
# ---------------------------------------------------------------------------


def _reject_blank(v: str) -> str:
    if not v.strip():
        raise ValueError("must not be blank")
    return v


MemoryKey = Annotated[str, Field(min_length=1), AfterValidator(_reject_blank)]
"""Non-blank record identifier."""


def normalize_category(v: Any) -> str:
    """Map ``None`` / blank input to the ``general`` category and trim the rest."""
    if v is None:
        return DEFAULT_CATEGORY
    text = str(v).strip()
    return text or DEFAULT_CATEGORY


Category = Annotated[str, BeforeValidator(normalize_category)]
"""Open category vocabulary; blank means ``general``."""


# ---------------------------------------------------------------------------
# Defaults (categories and relation types are open vocabularies)
# ---------------------------------------------------------------------------

DEFAULT_CATEGORY = "general"
DEFAULT_RELATION_TYPE = "related_to"


# ---------------------------------------------------------------------------
# Literal enums
# ---------------------------------------------------------------------------

SearchStrategy = Literal["keyword", "graph_traversal", "temporal", "priority", "context_aware"]
TraversalStrategy = Literal["bfs", "dfs"]
Direction = Literal["outgoing", "incoming", "both"]
ListOrder = Literal["priority", "timestamp"]

# Runtime membership checks for callers that bypass static typing
SEARCH_STRATEGIES: tuple[str, ...] = get_args(SearchStrategy)
TRAVERSAL_STRATEGIES: tuple[str, ...] = get_args(TraversalStrategy)
DIRECTIONS: tuple[str, ...] = get_args(Direction)
LIST_ORDERS: tuple[str, ...] = get_args(ListOrder)
