"""Built-in provider: a markdown backlog under docs/delivery/.

`backlog.md` holds a table `| ID | Actor | User Story | Status | ... |`; each
backlog item may have `<id>/tasks.md` with `| Task ID | Name | Status | ... |`
and `<id>/prd.md` whose first heading names the group.

Environment:
    NAVI_TASK_ARG_PATH           delivery docs directory (default docs/delivery)
    NAVI_TASK_ARG_STATUS_FILTER  comma-separated backlog statuses to include
"""

import json
import os
import re
import sys
from pathlib import Path
from typing import Any, Iterator, Optional

_LINK_RE = re.compile(r"^\[([^\]]*)\]\(.*\)$")


def _normalize(status: str) -> str:
    return re.sub(r"[\s_-]", "", status.lower())


def table_rows(lines: list[str], *header_words: str) -> Iterator[list[str]]:
    """Cells of the first table whose header contains every `header_words`."""
    in_table = False
    for line in lines:
        if not line.lstrip().startswith("|"):
            if in_table:
                return
            continue
        if re.search(r"-{3,}", line):
            continue
        if not in_table:
            in_table = all(word in line for word in header_words)
            continue
        yield [cell.strip() for cell in line.split("|")[1:]]


def _link_text(value: str) -> str:
    match = _LINK_RE.match(value)
    return match.group(1) if match else value


def read_tasks(tasks_file: Path) -> list[dict[str, str]]:
    if not tasks_file.is_file():
        return []
    tasks = []
    for cells in table_rows(tasks_file.read_text(encoding="utf-8").splitlines(), "Task ID", "Status"):
        if len(cells) < 3 or not cells[0]:
            continue
        tasks.append({"id": cells[0], "title": _link_text(cells[1]), "status": cells[2]})
    return tasks


def group_title(item_dir: Path, item_id: str, fallback: str) -> str:
    prd = item_dir / "prd.md"
    if not prd.is_file():
        return fallback
    lines = prd.read_text(encoding="utf-8").splitlines()
    title = lines[0] if lines else ""
    title = title.removeprefix("# ").removeprefix(f"PBI-{item_id}: ")
    return title or fallback


def build_groups(path: Path, status_filter: Optional[set[str]] = None) -> dict[str, Any]:
    """Raises FileNotFoundError or ValueError when the backlog is missing or has no table."""
    backlog = path / "backlog.md"
    lines = backlog.read_text(encoding="utf-8").splitlines()
    if not any("ID" in l and "Status" in l and "User Story" in l for l in lines):
        raise ValueError(f"no backlog table found in {backlog}")

    items = []
    for cells in table_rows(lines, "ID", "Status", "User Story"):
        if len(cells) < 4 or not cells[0]:
            continue
        item_id, title, status = cells[0], cells[2], cells[3]
        if status_filter and status.lower() not in status_filter:
            continue
        items.append((item_id, title, status))

    current = next((i for i in items if _normalize(i[2]) == "inprogress"), None)
    current = current or next((i for i in items if _normalize(i[2]) == "agreed"), None)

    groups = []
    result: dict[str, Any] = {}
    for item_id, title, status in items:
        group = {
            "id": f"PBI-{item_id}",
            "title": group_title(path / item_id, item_id, title),
            "status": status,
            "tasks": read_tasks(path / item_id / "tasks.md"),
        }
        if current and item_id == current[0]:
            group["is_current"] = True
            result = {"current_pbi_id": group["id"], "current_pbi_title": group["title"]}
        groups.append(group)
    return {"groups": groups, **result}


def main() -> int:
    path = Path(os.environ.get("NAVI_TASK_ARG_PATH") or "docs/delivery")
    raw_filter = os.environ.get("NAVI_TASK_ARG_STATUS_FILTER", "")
    status_filter = {part.strip().lower() for part in raw_filter.split(",") if part.strip()}
    try:
        output = build_groups(path, status_filter or None)
    except (OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    json.dump(output, sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())
