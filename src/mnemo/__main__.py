"""Entry point: python -m mnemo <command>

Maintenance commands against the configured memory repository:

- search <scope> <query>     Search titles, summaries and tags
- list <scope> <category>    List one category
- recent <scope> [limit]     Newest memories first
- reindex <scope>            Rebuild the scope's .index.json from the files
- reminders <scope>          Show pending reminders
"""

from __future__ import annotations

import asyncio
import logging
import sys

from mnemo.config import MnemoConfig, load_config, validate_config

USAGE = """\
Usage: python -m mnemo <command> [args]
  search <scope> <query>     Search memories
  list <scope> <category>    List memories in a category
  recent <scope> [limit]     Show the newest memories
  reindex <scope>            Rebuild the scope index
  reminders <scope>          Show pending reminders"""


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _print_results(results) -> None:
    if not results:
        print("(no memories)")
        return
    for r in results:
        fm = r.frontmatter
        tags = ", ".join(fm.tags)
        print(f"{r.path}\n  [{fm.type.value}] {fm.title} ({fm.date}) {tags}\n  {fm.summary}")


async def _run(config: MnemoConfig, cmd: str, args: list[str]) -> int:
    from mnemo.github.cache import RevisionCache
    from mnemo.github.client import GitHubClient
    from mnemo.memory.manager import MemoryManager
    from mnemo.memory.models import MemoryCategory
    from mnemo.scheduler.reminders import ReminderStore

    cache = RevisionCache(ttl=config.memory.revision_cache_ttl)
    async with GitHubClient(config.github, cache=cache) as client:
        manager = MemoryManager(
            client,
            index_cache_ttl=config.memory.index_cache_ttl,
            create_attempts=config.memory.create_attempts,
        )
        if cmd == "search" and len(args) >= 2:
            _print_results(await manager.search_memories(" ".join(args[1:]), args[0]))
        elif cmd == "list" and len(args) == 2:
            _print_results(await manager.list_memories(MemoryCategory(args[1]), args[0]))
        elif cmd == "recent" and len(args) in (1, 2):
            limit = int(args[1]) if len(args) == 2 else 10
            _print_results(await manager.get_recent_memories(args[0], limit))
        elif cmd == "reindex" and len(args) == 1:
            index, _ = await manager.index.rebuild_index(args[0])
            print(f"Rebuilt index for {args[0]}: {len(index.entries)} entries")
        elif cmd == "reminders" and len(args) == 1:
            reminders = await ReminderStore(client).load(args[0])
            for r in reminders:
                print(f"{r.id}  {r.trigger_time.isoformat()}  <@{r.user_id}> {r.message}")
            if not reminders:
                print("(no reminders)")
        else:
            print(USAGE)
            return 1
        logging.getLogger(__name__).debug("GitHub API calls: %d", client.api_call_count)
    return 0


def main() -> None:
    if len(sys.argv) < 2:
        print(USAGE)
        sys.exit(1)

    config = load_config()
    _setup_logging(config.log_level)
    validate_config(config)

    cmd, args = sys.argv[1], sys.argv[2:]
    try:
        code = asyncio.run(_run(config, cmd, args))
    except KeyboardInterrupt:
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
