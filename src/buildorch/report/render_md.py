from __future__ import annotations

from typing import Any


def render_markdown(summary: dict[str, Any]) -> str:
    run = summary["run"]
    tasks = summary["tasks"]
    problems = summary["problems"]
    artifacts = summary["artifacts"]

    lines: list[str] = []
    lines.append("# Build Report")
    lines.append("")
    lines.append(f"- target: `{run['target'] or '(all)'}`")
    lines.append(f"- status: **{run['status']}**")
    lines.append(f"- started: {run['created_at']}")
    lines.append(f"- ended: {run['updated_at']}")
    lines.append(f"- max_parallel: {run['max_parallel']}")
    lines.append("")
    lines.append("## Tasks")
    lines.append("")
    lines.append("| id | status | duration_sec | depends_on |")
    lines.append("|---|---|---:|---|")
    for row in tasks:
        deps = ", ".join(row["depends_on"]) or "-"
        duration = "-" if row["duration_sec"] is None else row["duration_sec"]
        lines.append(f"| {row['id']} | {row['status']} | {duration} | {deps} |")
    lines.append("")
    lines.append("## Failed / Skipped")
    lines.append("")
    if problems:
        for row in problems:
            lines.append(f"### {row['id']} ({row['status']})")
            if row["skip_reason"]:
                lines.append(f"- skip_reason: `{row['skip_reason']}`")
            if row["cause"]:
                lines.append(f"- cause: {row['cause']}")
            if row["diagnostics"]:
                lines.append("```")
                lines.extend(row["diagnostics"])
                lines.append("```")
            lines.append("")
    else:
        lines.append("No failed or skipped tasks.")
        lines.append("")
    lines.append("## Artifacts")
    lines.append("")
    if artifacts:
        for artifact in artifacts:
            lines.append(
                f"- `{artifact['path']}` ({artifact['classifier']}, {artifact['files']} files)"
            )
    else:
        lines.append("- (none)")
    lines.append("")
    return "\n".join(lines)
