"""Markdown + YAML front-matter rendering for memory files."""

from __future__ import annotations

import logging

import frontmatter
import yaml

from mnemo.memory.models import MemoryFrontmatter

logger = logging.getLogger(__name__)


def render_markdown(fm: MemoryFrontmatter, content: str) -> str:
    """``---`` / YAML / ``---`` / blank line / body. Long lines never wrap."""
    post = frontmatter.Post(content, **fm.to_metadata())
    return frontmatter.dumps(post, sort_keys=False, width=4096)


def parse_markdown(text: str) -> tuple[MemoryFrontmatter, str] | None:
    """Parse a memory file. Returns None for anything that is not a record."""
    try:
        post = frontmatter.loads(text)
    except yaml.YAMLError as e:
        logger.debug("Invalid front-matter YAML: %s", e)
        return None
    if not post.metadata:
        return None
    try:
        fm = MemoryFrontmatter.from_metadata(dict(post.metadata))
    except ValueError as e:
        logger.debug("Not a memory record: %s", e)
        return None
    return fm, post.content.strip()
