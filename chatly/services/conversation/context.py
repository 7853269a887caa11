"""Knowledge base context assembly."""

from collections.abc import Iterable

from chatly.models import AIConfig, KnowledgeEntry

MAX_CONTEXT_ENTRIES = 20
ENTRY_SEPARATOR = "\n\n"


def build_context(
    knowledge_entries: Iterable[KnowledgeEntry],
    config: AIConfig,
    max_entries: int = MAX_CONTEXT_ENTRIES,
) -> str:
    """Render a tenant's knowledge entries into prompt context.

    Takes the ``max_entries`` most recently updated entries, newest first.
    Entries with the same updated_at keep their input order. Returns an empty
    string when the knowledge base is disabled or empty.
    """
    if not config.knowledge_base_enabled:
        return ""

    entries = sorted(knowledge_entries, key=lambda e: e.updated_at, reverse=True)
    return ENTRY_SEPARATOR.join(entry.render() for entry in entries[:max_entries])
