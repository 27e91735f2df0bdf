"""Memory record types and front-matter (de)serialisation."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

SOURCE = "discord"

Recurring = Literal["none", "daily", "weekly", "monthly", "yearly"]
TaskStatus = Literal["todo", "doing", "done"]
Priority = Literal["high", "medium", "low"]


class MemoryCategory(str, Enum):
    DAILY = "daily"
    IDEAS = "ideas"
    RESEARCH = "research"
    IMAGES = "images"
    LOGS = "logs"
    SCHEDULE = "schedule"
    TASKS = "tasks"


ALL_CATEGORIES: tuple[MemoryCategory, ...] = tuple(MemoryCategory)


@dataclass
class ScheduleDetails:
    """Extra front-matter carried by ``schedule`` records."""

    start_date: str | None = None
    end_date: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    location: str | None = None
    recurring: Recurring | None = None

    def is_empty(self) -> bool:
        return not any(getattr(self, k) for k in SCHEDULE_KEYS)


@dataclass
class TaskDetails:
    """Extra front-matter carried by ``tasks`` records."""

    status: TaskStatus | None = None
    due_date: str | None = None
    priority: Priority | None = None

    def is_empty(self) -> bool:
        return not any(getattr(self, k) for k in TASK_KEYS)


SCHEDULE_KEYS = ("start_date", "end_date", "start_time", "end_time", "location", "recurring")
TASK_KEYS = ("status", "due_date", "priority")
_TIME_KEYS = ("start_time", "end_time")


@dataclass
class MemoryFrontmatter:
    title: str
    date: str
    tags: list[str]
    type: MemoryCategory
    summary: str
    source: str = SOURCE
    author_id: str | None = None
    drive_url: str | None = None
    schedule: ScheduleDetails | None = None
    task: TaskDetails | None = None

    def to_metadata(self) -> dict[str, Any]:
        """Flatten to the on-disk key order, dropping empty optionals."""
        meta: dict[str, Any] = {
            "title": self.title,
            "date": self.date,
            "tags": list(self.tags),
            "source": self.source,
            "type": self.type.value,
        }
        if self.author_id:
            meta["author_id"] = self.author_id
        if self.drive_url:
            meta["drive_url"] = self.drive_url
        if self.schedule:
            for key in SCHEDULE_KEYS:
                value = getattr(self.schedule, key)
                if value:
                    meta[key] = value
        if self.task:
            for key in TASK_KEYS:
                value = getattr(self.task, key)
                if value:
                    meta[key] = value
        meta["summary"] = self.summary
        return meta

    @classmethod
    def from_metadata(cls, meta: dict[str, Any]) -> MemoryFrontmatter:
        """Build from parsed YAML. Raises ValueError on an unknown type."""
        category = MemoryCategory(str(meta.get("type", "")))

        schedule = ScheduleDetails(**{k: _scalar(meta.get(k), k) for k in SCHEDULE_KEYS})
        task = TaskDetails(**{k: _scalar(meta.get(k), k) for k in TASK_KEYS})

        return cls(
            title=_scalar(meta.get("title"), "title") or "",
            date=_scalar(meta.get("date"), "date") or "",
            tags=_tag_list(meta.get("tags")),
            type=category,
            summary=_scalar(meta.get("summary"), "summary") or "",
            source=_scalar(meta.get("source"), "source") or SOURCE,
            author_id=_scalar(meta.get("author_id"), "author_id"),
            drive_url=_scalar(meta.get("drive_url"), "drive_url"),
            schedule=None if schedule.is_empty() else schedule,
            task=None if task.is_empty() else task,
        )


def _tag_list(value: Any) -> list[str]:
    if not value:
        return []
    if not isinstance(value, list):
        value = [value]
    return [str(t) for t in value if t is not None]


def _scalar(value: Any, key: str) -> Any:
    """Normalise YAML-typed scalars back to the strings we wrote."""
    if value is None:
        return None
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    # YAML 1.1 reads an unquoted 10:00 as the base-60 integer 600.
    if key in _TIME_KEYS and isinstance(value, int) and not isinstance(value, bool):
        return f"{value // 60:02d}:{value % 60:02d}"
    if isinstance(value, str):
        return value
    return str(value)


@dataclass
class CreateMemoryInput:
    """Structured memory produced by the LLM layer."""

    category: MemoryCategory
    title: str
    tags: list[str]
    summary: str
    content: str
    drive_url: str | None = None
    schedule: ScheduleDetails | None = None
    task: TaskDetails | None = None

    def __post_init__(self) -> None:
        self.category = MemoryCategory(self.category)
        if self.schedule is not None and self.category is not MemoryCategory.SCHEDULE:
            raise ValueError(f"schedule details given for a {self.category.value} memory")
        if self.task is not None and self.category is not MemoryCategory.TASKS:
            raise ValueError(f"task details given for a {self.category.value} memory")

    def to_frontmatter(self, date: dt.date, author_id: str | None = None) -> MemoryFrontmatter:
        return MemoryFrontmatter(
            title=self.title,
            date=date.isoformat(),
            tags=list(self.tags),
            type=self.category,
            summary=self.summary,
            author_id=author_id or None,
            drive_url=self.drive_url or None,
            schedule=None if self.schedule is None or self.schedule.is_empty() else self.schedule,
            task=None if self.task is None or self.task.is_empty() else self.task,
        )


@dataclass
class MemoryUpdate:
    """Partial edit; ``None`` means keep the current value."""

    title: str | None = None
    summary: str | None = None
    tags: list[str] | None = None
    content: str | None = None


@dataclass
class SavedMemory:
    path: str
    sha: str
    frontmatter: MemoryFrontmatter
    commit_url: str = ""


@dataclass
class SearchResult:
    """A record as returned by search/list/recent/edit."""

    path: str
    frontmatter: MemoryFrontmatter
    content: str = ""


@dataclass
class IndexEntry:
    """Denormalised manifest row: enough to answer a search."""

    path: str
    category: MemoryCategory
    title: str
    tags: list[str] = field(default_factory=list)
    date: str = ""
    summary: str = ""
    source: str = SOURCE

    @classmethod
    def from_frontmatter(cls, path: str, fm: MemoryFrontmatter) -> IndexEntry:
        return cls(
            path=path,
            category=fm.type,
            title=fm.title,
            tags=list(fm.tags),
            date=fm.date,
            summary=fm.summary,
            source=fm.source,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "category": self.category.value,
            "title": self.title,
            "tags": list(self.tags),
            "date": self.date,
            "summary": self.summary,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IndexEntry:
        return cls(
            path=data["path"],
            category=MemoryCategory(data["category"]),
            title=_scalar(data.get("title"), "title") or "",
            tags=_tag_list(data.get("tags")),
            date=_scalar(data.get("date"), "date") or "",
            summary=_scalar(data.get("summary"), "summary") or "",
            source=_scalar(data.get("source"), "source") or SOURCE,
        )

    def searchable_text(self) -> str:
        return " ".join([self.title, self.summary, *self.tags]).lower()

    def to_result(self) -> SearchResult:
        return SearchResult(
            path=self.path,
            frontmatter=MemoryFrontmatter(
                title=self.title,
                date=self.date,
                tags=list(self.tags),
                type=self.category,
                summary=self.summary,
                source=self.source,
            ),
        )
