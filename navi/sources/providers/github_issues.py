"""Built-in provider: GitHub issues grouped by milestone.

Environment:
    NAVI_TASK_ARG_REPO   owner/name (default: the repository of the cwd)
    NAVI_TASK_ARG_LIMIT  maximum issues to fetch (default 100)
"""

import json
import os
import re
import subprocess
import sys
from typing import Any

_ISSUE_FIELDS = "number,title,state,labels,assignees,milestone,url"


def _gh(*args: str) -> str:
    result = subprocess.run(["gh", *args], capture_output=True, text=True, check=False)
    if result.returncode != 0:
        raise RuntimeError(result.stderr.strip() or f"gh exited with {result.returncode}")
    return result.stdout


def _state(value: object) -> str:
    return str(value or "").lower()


def to_task(issue: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": f"#{issue.get('number')}",
        "title": issue.get("title") or "",
        "status": _state(issue.get("state")),
        "url": issue.get("url"),
    }


def group_issues(issues: list[dict[str, Any]]) -> dict[str, Any]:
    """Milestone groups in first-seen order, then an "Ungrouped" group."""
    groups: dict[str, dict[str, Any]] = {}
    ungrouped: list[dict[str, Any]] = []
    for issue in issues:
        milestone = issue.get("milestone") or {}
        title = milestone.get("title")
        if not title:
            ungrouped.append(to_task(issue))
            continue
        if title not in groups:
            groups[title] = {
                "id": re.sub(r"[^a-zA-Z0-9]", "-", title).lower(),
                "title": title,
                "status": "closed" if _state(milestone.get("state")) == "closed" else "open",
                "url": milestone.get("url"),
                "tasks": [],
            }
        groups[title]["tasks"].append(to_task(issue))

    result = list(groups.values())
    if ungrouped:
        result.append({"id": "ungrouped", "title": "Ungrouped", "status": "open", "tasks": ungrouped})
    return {"groups": result}


def main() -> int:
    repo = os.environ.get("NAVI_TASK_ARG_REPO", "")
    limit = os.environ.get("NAVI_TASK_ARG_LIMIT", "100")
    try:
        if not repo:
            repo = _gh("repo", "view", "--json", "nameWithOwner", "-q", ".nameWithOwner").strip()
        raw = _gh("issue", "list", "--repo", repo, "--json", _ISSUE_FIELDS, "--limit", limit)
    except FileNotFoundError:
        print("error: 'gh' CLI is not installed", file=sys.stderr)
        return 1
    except RuntimeError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    json.dump(group_issues(json.loads(raw)), sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())
