"""Serialize the stores to JSON, CSV and a Kanban board document."""

from __future__ import annotations

import csv
import io
import json
from enum import Enum
from typing import Any, Iterable

from .constants import CATEGORY_COLORS, PRIORITY_COLORS
from .models import BacklogItem, ColumnDefinition, Module

BOARD_NAME = "Planboard - Backlog"

TASK_CSV_HEADERS = [
    "Module",
    "Task",
    "Status",
    "Priority",
    "Created",
    "Progress %",
    "Assignee",
    "Estimated Hours",
]

ITEM_CSV_HEADERS = [
    "ID",
    "Title",
    "Description",
    "Category",
    "Module",
    "Priority",
    "Status",
    "Column",
    "Creator",
    "Created",
    "Tags",
    "Estimated Hours",
]


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"
    KANBAN = "kanban"


def parse_format(raw: Any, *, allowed: Iterable[ExportFormat]) -> ExportFormat:
    allowed = list(allowed)
    try:
        fmt = ExportFormat(str(getattr(raw, "value", raw)).lower())
    except ValueError:
        fmt = None
    if fmt is None or fmt not in allowed:
        names = [f.value for f in allowed]
        raise ValueError(f"Unsupported export format {raw!r}; expected one of {names}")
    return fmt


def to_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


def _blank(value: Any) -> Any:
    return "" if value is None else value


def tasks_csv(modules: Iterable[Module]) -> str:
    """One row per task, modules in declaration order."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(TASK_CSV_HEADERS)
    for module in modules:
        for task in module.all_tasks():
            writer.writerow(
                [
                    module.name.value,
                    task.title,
                    task.status.value,
                    task.priority.value,
                    task.created_at,
                    task.progress,
                    _blank(task.assignee),
                    _blank(task.estimate_hours),
                ]
            )
    return buf.getvalue()


def items_csv(items: Iterable[BacklogItem]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(ITEM_CSV_HEADERS)
    for item in items:
        writer.writerow(
            [
                item.id,
                item.title,
                item.description,
                item.category.value,
                item.impacted_module,
                item.priority.value,
                item.status.value,
                item.column.value,
                item.creator,
                item.created_at,
                ";".join(item.tags),
                _blank(item.estimate_hours),
            ]
        )
    return buf.getvalue()


def kanban_board(items: list[BacklogItem], columns: Iterable[ColumnDefinition]) -> str:
    """Board-tool interop shape: lists of cards with labels and checklists."""
    lists: list[dict[str, Any]] = []
    for col in sorted(columns, key=lambda c: c.order):
        cards = []
        for item in items:
            if item.column != col.id:
                continue
            cards.append(
                {
                    "id": item.id,
                    "name": item.title,
                    "desc": item.description,
                    "labels": [
                        {"name": item.category.value, "color": CATEGORY_COLORS.get(item.category, "gray")},
                        {"name": item.priority.value, "color": PRIORITY_COLORS.get(item.priority, "gray")},
                    ],
                    "members": [{"username": item.creator}],
                    "checklists": (
                        [
                            {
                                "name": "Checklist",
                                "checkItems": [
                                    {"name": c.text, "state": "complete" if c.done else "incomplete"}
                                    for c in item.checklist
                                ],
                            }
                        ]
                        if item.checklist
                        else []
                    ),
                }
            )
        lists.append({"id": col.id.value, "name": col.title, "color": col.color, "cards": cards})
    return to_json({"name": BOARD_NAME, "lists": lists})
