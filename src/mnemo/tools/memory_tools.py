"""Memory tools for the chat/agent layer.

These functions are designed to be exposed as tools to the AI agent (or
wired to slash commands), turning MemoryManager results into short text.
Authorization and user-facing error wording live here, not in the core.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from mnemo.github.errors import PermissionDeniedError, RateLimitError
from mnemo.memory.models import CreateMemoryInput, MemoryCategory, MemoryUpdate
from mnemo.retry import extract_retry_after, is_rate_limit_error, is_secondary_rate_limit

if TYPE_CHECKING:
    from mnemo.memory.manager import MemoryManager
    from mnemo.memory.models import MemoryFrontmatter, SearchResult


def can_modify(frontmatter: MemoryFrontmatter, requester_id: str, is_admin: bool = False) -> bool:
    """Records without an author are open; otherwise author or admin only."""
    if is_admin or not frontmatter.author_id:
        return True
    return frontmatter.author_id == requester_id


def format_user_facing_error(error: BaseException) -> str:
    status = getattr(error, "status", None)
    if isinstance(error, RateLimitError) or is_rate_limit_error(error) or is_secondary_rate_limit(error):
        retry_after = extract_retry_after(error)
        if retry_after:
            return f"Rate limited. Please wait about {retry_after:g} seconds and try again."
        return "Rate limited. Please wait a moment and try again."
    if status == 401:
        return "GitHub rejected the token. Check that GITHUB_TOKEN is valid and not expired."
    if isinstance(error, PermissionDeniedError) or status == 403:
        return "Permission denied. Check the bot's permissions and the token's repository scopes."
    return f"Something went wrong: {error}"


def _format_line(result: SearchResult) -> str:
    fm = result.frontmatter
    tags = f" [{', '.join(fm.tags)}]" if fm.tags else ""
    return f"- ({fm.type.value}) {fm.title}: {fm.summary}{tags} `{result.path}`"


def _format_results(results: list[SearchResult], empty: str) -> str:
    if not results:
        return empty
    return "\n".join(_format_line(r) for r in results)


def get_memory_tools(manager: MemoryManager) -> dict[str, callable]:
    """Return a dict of tool_name -> async callable for memory operations.

    These can be registered as agent tools or called directly.
    """

    async def save_memory(
        scope_id: str,
        category: str,
        title: str,
        summary: str,
        content: str,
        tags: list[str] | None = None,
        author_id: str | None = None,
    ) -> str:
        """Save a new memory record."""
        saved = await manager.save_memory(
            CreateMemoryInput(
                category=MemoryCategory(category),
                title=title,
                tags=tags or [],
                summary=summary,
                content=content,
            ),
            scope_id,
            author_id,
        )
        return f"Saved {saved.frontmatter.type.value}: {title} ({saved.path})"

    async def search_memories(scope_id: str, query: str, categories: list[str] | None = None) -> str:
        """Search titles, summaries and tags."""
        cats = [MemoryCategory(c) for c in categories] if categories is not None else None
        results = await manager.search_memories(query, scope_id, cats)
        return _format_results(results, f"(no memories matching '{query}')")

    async def list_memories(scope_id: str, category: str) -> str:
        """List every memory in one category."""
        results = await manager.list_memories(MemoryCategory(category), scope_id)
        return _format_results(results, f"(no {category} memories)")

    async def recent_memories(scope_id: str, limit: int = 10) -> str:
        """Show the newest memories."""
        results = await manager.get_recent_memories(scope_id, limit)
        return _format_results(results, "(no memories yet)")

    async def edit_memory(
        scope_id: str,
        path: str,
        title: str | None = None,
        summary: str | None = None,
        tags: list[str] | None = None,
        content: str | None = None,
    ) -> str:
        """Edit a memory; omitted fields keep their value."""
        result = await manager.edit_memory(
            scope_id, path, MemoryUpdate(title=title, summary=summary, tags=tags, content=content)
        )
        return f"Updated: {result.frontmatter.title} ({path})"

    async def delete_memory(scope_id: str, path: str) -> str:
        """Delete a memory file."""
        await manager.delete_memory(scope_id, path)
        return f"Deleted {path}"

    return {
        "save_memory": save_memory,
        "search_memories": search_memories,
        "list_memories": list_memories,
        "recent_memories": recent_memories,
        "edit_memory": edit_memory,
        "delete_memory": delete_memory,
    }
