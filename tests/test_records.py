"""Tests for memory records: front-matter, Markdown, scopes and ids."""

import datetime as dt
import uuid

import pytest

from mnemo.memory.ids import UUID7Generator
from mnemo.memory.markdown import parse_markdown, render_markdown
from mnemo.memory.models import (
    CreateMemoryInput,
    IndexEntry,
    MemoryCategory,
    MemoryFrontmatter,
    ScheduleDetails,
    TaskDetails,
)
from mnemo.memory.scope import (
    category_path,
    get_scope_id,
    index_path,
    is_dm_scope,
    legacy_category_path,
    memory_file_path,
)


def _fm(**overrides) -> MemoryFrontmatter:
    values = dict(
        title="Coffee idea",
        date="2025-01-15",
        tags=["coffee", "startup"],
        type=MemoryCategory.IDEAS,
        summary="Subscription beans",
    )
    values.update(overrides)
    return MemoryFrontmatter(**values)


class TestRenderMarkdown:
    def test_layout_and_key_order(self):
        text = render_markdown(_fm(author_id="42"), "Body text")

        assert text.startswith("---\n")
        header, body = text.split("\n---\n", 1)
        keys = [line.split(":", 1)[0] for line in header.splitlines()[1:] if not line.startswith("-")]
        assert keys == ["title", "date", "tags", "source", "type", "author_id", "summary"]
        assert body.startswith("\n")
        assert body.strip() == "Body text"

    def test_omits_empty_optionals(self):
        text = render_markdown(_fm(), "x")
        assert "author_id" not in text
        assert "drive_url" not in text
        assert "status" not in text

    def test_long_lines_do_not_wrap(self):
        summary = "word " * 60
        text = render_markdown(_fm(summary=summary.strip()), "x")
        assert any(line.startswith("summary:") and "word" in line and len(line) > 250 for line in text.splitlines())

    def test_round_trip(self):
        fm = _fm(
            type=MemoryCategory.SCHEDULE,
            author_id="123456789012345678",
            schedule=ScheduleDetails(
                start_date="2025-02-01",
                start_time="10:00",
                end_time="11:30",
                location="Tokyo",
                recurring="weekly",
            ),
        )
        parsed, content = parse_markdown(render_markdown(fm, "## Notes\n\nbring slides"))
        assert parsed == fm
        assert content == "## Notes\n\nbring slides"

    def test_task_round_trip(self):
        fm = _fm(
            type=MemoryCategory.TASKS,
            task=TaskDetails(status="doing", due_date="2025-03-01", priority="high"),
        )
        parsed, _ = parse_markdown(render_markdown(fm, "x"))
        assert parsed.task == fm.task
        assert parsed.schedule is None


class TestParseMarkdown:
    def test_no_front_matter(self):
        assert parse_markdown("just text") is None

    def test_invalid_yaml(self):
        assert parse_markdown("---\ntitle: [unclosed\n---\nbody") is None

    def test_unknown_type(self):
        assert parse_markdown("---\ntitle: x\ntype: poems\n---\nbody") is None

    def test_yaml_typed_scalars_are_normalized(self):
        text = (
            "---\n"
            "title: Meeting\n"
            "date: 2025-01-15\n"
            "tags: solo\n"
            "type: schedule\n"
            "start_time: 10:00\n"
            "summary: Standup\n"
            "---\n"
            "body\n"
        )
        fm, content = parse_markdown(text)
        assert fm.date == "2025-01-15"
        assert fm.tags == ["solo"]
        assert fm.schedule.start_time == "10:00"
        assert fm.source == "discord"
        assert content == "body"


class TestModels:
    def test_create_input_coerces_category(self):
        data = CreateMemoryInput(category="tasks", title="t", tags=[], summary="s", content="c")
        assert data.category is MemoryCategory.TASKS

    def test_schedule_on_wrong_category(self):
        with pytest.raises(ValueError, match="schedule details"):
            CreateMemoryInput(
                category=MemoryCategory.IDEAS,
                title="t",
                tags=[],
                summary="s",
                content="c",
                schedule=ScheduleDetails(location="here"),
            )

    def test_task_on_wrong_category(self):
        with pytest.raises(ValueError, match="task details"):
            CreateMemoryInput(
                category=MemoryCategory.DAILY,
                title="t",
                tags=[],
                summary="s",
                content="c",
                task=TaskDetails(status="todo"),
            )

    def test_to_frontmatter(self):
        data = CreateMemoryInput(
            category=MemoryCategory.TASKS,
            title="Ship it",
            tags=["work"],
            summary="Release",
            content="c",
            task=TaskDetails(),
        )
        fm = data.to_frontmatter(dt.date(2025, 1, 15), "42")
        assert fm.date == "2025-01-15"
        assert fm.type is MemoryCategory.TASKS
        assert fm.author_id == "42"
        assert fm.source == "discord"
        assert fm.task is None  # empty details are dropped

    def test_index_entry_dict_round_trip(self):
        entry = IndexEntry.from_frontmatter("memory/g1/ideas/a.md", _fm())
        assert IndexEntry.from_dict(entry.to_dict()) == entry
        assert entry.to_dict()["category"] == "ideas"

    def test_searchable_text(self):
        entry = IndexEntry.from_frontmatter("p", _fm())
        assert "coffee idea" in entry.searchable_text()
        assert "startup" in entry.searchable_text()


class TestScope:
    def test_guild_scope(self):
        assert get_scope_id("111", "222") == "111"

    def test_dm_scope(self):
        scope = get_scope_id(None, "222")
        assert scope == "dm-222"
        assert is_dm_scope(scope)
        assert not is_dm_scope("111")

    def test_paths(self):
        assert category_path("g1", MemoryCategory.DAILY) == "memory/g1/daily"
        assert legacy_category_path(MemoryCategory.DAILY) == "memory/daily"
        assert index_path("dm-5") == "memory/dm-5/.index.json"
        assert (
            memory_file_path("g1", MemoryCategory.IDEAS, dt.date(2025, 1, 15), "abc")
            == "memory/g1/ideas/2025-01-15-abc.md"
        )

    @pytest.mark.parametrize("bad", ["", "a/b", ".hidden"])
    def test_rejects_unsafe_scope_ids(self, bad):
        with pytest.raises(ValueError):
            index_path(bad)


class TestUUID7:
    def test_version_and_variant(self):
        value = UUID7Generator()()
        assert isinstance(value, uuid.UUID)
        assert value.version == 7
        assert value.variant == uuid.RFC_4122

    def test_monotonic_and_unique(self):
        gen = UUID7Generator()
        ids = [str(gen()) for _ in range(2000)]
        assert ids == sorted(ids)
        assert len(set(ids)) == len(ids)
