"""Memory persistence: Markdown records + per-scope JSON index in a GitHub repo.

Layout (repository root):
    memory/
    ├── {scopeId}/                         # guild id, or dm-{userId}
    │   ├── .index.json                    # {version, entries[]} search manifest
    │   ├── .reminders.json                # pending reminders for the scope
    │   ├── daily/ ideas/ research/ images/ logs/ schedule/ tasks/
    │   │   └── 2026-02-18-{uuid7}.md      # YAML front-matter + Markdown body
    ├── .dm_reminder_scopes.json           # DM scopes that hold reminders
    └── {category}/                        # legacy pre-scope layout, read-only
"""

from mnemo.memory.errors import (
    MemoryCreateError,
    MemoryNotFoundError,
    MemoryParseError,
    MemoryStoreError,
)
from mnemo.memory.index import IndexManager, MemoryIndex
from mnemo.memory.manager import MemoryManager
from mnemo.memory.models import (
    CreateMemoryInput,
    MemoryCategory,
    MemoryFrontmatter,
    MemoryUpdate,
    SavedMemory,
    ScheduleDetails,
    SearchResult,
    TaskDetails,
)
from mnemo.memory.scope import get_scope_id

__all__ = [
    "CreateMemoryInput",
    "IndexManager",
    "MemoryCategory",
    "MemoryCreateError",
    "MemoryFrontmatter",
    "MemoryIndex",
    "MemoryManager",
    "MemoryNotFoundError",
    "MemoryParseError",
    "MemoryStoreError",
    "MemoryUpdate",
    "SavedMemory",
    "ScheduleDetails",
    "SearchResult",
    "TaskDetails",
    "get_scope_id",
]
