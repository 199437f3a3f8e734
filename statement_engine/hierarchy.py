"""
Hierarchy tree builder -- account rows to an ordered group/leaf row list.

Responsibility:
    Expands account-level aggregated rows (each carrying a
    code0..code3/name0..name3 path) into every ancestor group node plus one
    leaf per account, summing amount columns upward, and emits the nodes
    depth-first in display order.

Architecture position:
    Engine -- pure.  Consumes ``apply_rollup`` output (after sign
    handling); its output feeds ``special_rows`` and the generator.

Invariants enforced:
    * Every group node's amount equals the sum of its descendant leaves.
    * Empty levels (no code and no name) are skipped, not emitted.
    * Siblings are ordered by ``compare_nodes``: code0 (alphabetical),
      code1..code3 (numeric ascending, empty/non-numeric last),
      account_code, then hierarchy path.
    * ``detail_level`` caps depth; amounts of deeper nodes are already
      folded into the retained ancestors.
"""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from functools import cmp_to_key
from typing import Any

from statement_engine.models import ColumnDescriptor, FormatType, GridRow, LayoutItem, RowStyle
from statement_kernel.domain.movements import ZERO
from statement_kernel.logging_config import get_logger

logger = get_logger("engine.hierarchy")

ACCOUNT_LEVEL = 5
GROUP_LEVELS: tuple[int, ...] = (0, 1, 2, 3)
EMPTY_CODE_RANK = 999999

_LEADING_INT = re.compile(r"^\s*(-?\d+)")


@dataclass
class _Node:
    path: tuple[str, ...]
    level: int
    label: str
    fields: dict[str, Any]
    amounts: dict[str, Decimal]
    children: list[_Node] = field(default_factory=list)


# =========================================================================
# Ordering
# =========================================================================


def to_num(code: Any) -> int:
    """Leading integer of a code; empty or non-numeric -> 999999."""
    if code is None or code == "":
        return EMPTY_CODE_RANK
    if isinstance(code, int) and not isinstance(code, bool):
        return code
    match = _LEADING_INT.match(str(code))
    return int(match.group(1)) if match else EMPTY_CODE_RANK


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def compare_code_field(a: Any, b: Any) -> int:
    num_a, num_b = to_num(a), to_num(b)
    if num_a == EMPTY_CODE_RANK and num_b == EMPTY_CODE_RANK:
        return _cmp(str(a or ""), str(b or ""))
    return _cmp(num_a, num_b)


def _compare_text(a: Any, b: Any) -> int:
    """Alphabetical, empty last."""
    text_a, text_b = str(a or ""), str(b or "")
    if not text_a or not text_b:
        return _cmp(not text_a, not text_b)
    return _cmp(text_a, text_b)


def compare_nodes(a: Mapping[str, Any], b: Mapping[str, Any]) -> int:
    """Display order of two sibling nodes (or any two account rows)."""
    diff = _compare_text(a.get("code0"), b.get("code0"))
    if diff:
        return diff
    for name in ("code1", "code2", "code3"):
        diff = compare_code_field(a.get(name), b.get(name))
        if diff:
            return diff
    diff = _cmp(str(a.get("account_code") or ""), str(b.get("account_code") or ""))
    if diff:
        return diff
    path_a, path_b = list(a.get("hierarchy") or ()), list(b.get("hierarchy") or ())
    return _cmp(path_a, path_b)


_node_key = cmp_to_key(lambda x, y: compare_nodes(
    {**x.fields, "hierarchy": x.path}, {**y.fields, "hierarchy": y.path},
))


# =========================================================================
# Building
# =========================================================================


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def group_label(code: str | None, name: str | None, level: int) -> str:
    if name and code:
        return f"{name} ({code})"
    return name or code or f"Level {level}"


def account_label(code: str | None, description: str | None) -> str:
    if description:
        return f"{description} ({code})"
    return code or "Unknown"


def _effective_depth(detail_level: int) -> int:
    # Level 4 does not exist in the chart of accounts
    return 3 if detail_level == 4 else detail_level


def build_tree(
    rows: Sequence[Mapping[str, Any]],
    columns: Sequence[ColumnDescriptor],
    detail_level: int = ACCOUNT_LEVEL,
) -> list[GridRow]:
    """
    Build the display rows for account-level aggregated ``rows``.

    Each input row supplies the hierarchy fields plus one amount per
    column key.
    """
    keys = [c.key for c in columns]
    depth = _effective_depth(detail_level)
    roots: list[_Node] = []
    index: dict[tuple[str, ...], _Node] = {}

    def node_for(path: tuple[str, ...], level: int, label: str,
                 fields: dict[str, Any], siblings: list[_Node]) -> _Node:
        node = index.get(path)
        if node is None:
            node = _Node(path, level, label, fields, {k: ZERO for k in keys})
            index[path] = node
            siblings.append(node)
        return node

    for row in rows:
        amounts = {k: row.get(k) or ZERO for k in keys}
        path: tuple[str, ...] = ()
        siblings = roots
        fields: dict[str, Any] = {}

        for level in GROUP_LEVELS:
            if level > depth:
                break
            code = _text(row.get(f"code{level}"))
            name = _text(row.get(f"name{level}"))
            if code is None and name is None:
                continue
            fields = {**fields, f"code{level}": code, f"name{level}": name}
            path = path + (code or name,)
            node = node_for(path, level, group_label(code, name, level), fields, siblings)
            for k in keys:
                node.amounts[k] += amounts[k]
            siblings = node.children

        account = _text(row.get("account_code"))
        if depth >= ACCOUNT_LEVEL and account is not None:
            leaf_fields = {
                **fields,
                "account_code": account,
                "account_description": _text(row.get("account_description")),
            }
            leaf = node_for(
                path + (account,),
                ACCOUNT_LEVEL,
                account_label(account, leaf_fields["account_description"]),
                leaf_fields,
                siblings,
            )
            for k in keys:
                leaf.amounts[k] += amounts[k]

    out: list[GridRow] = []
    _emit(roots, out)
    logger.debug(
        "hierarchy_built",
        extra={"input_rows": len(rows), "nodes": len(out), "detail_level": detail_level},
    )
    return out


def _emit(nodes: list[_Node], out: list[GridRow]) -> None:
    for node in sorted(nodes, key=_node_key):
        out.append(_to_row(node))
        _emit(node.children, out)


def _to_row(node: _Node) -> GridRow:
    is_account = node.level == ACCOUNT_LEVEL
    return GridRow(
        label=node.label,
        type="account" if is_account else "category",
        style=RowStyle.TOTAL.value if node.level == 0 else RowStyle.NORMAL.value,
        indent=len(node.path) - 1,
        level=node.level,
        format=FormatType.CURRENCY.value,
        amounts=dict(node.amounts),
        hierarchy=node.path,
        codes=dict(node.fields),
        is_group=not is_account,
    )


# =========================================================================
# Post-processing
# =========================================================================


def mark_always_visible_rows(rows: Sequence[GridRow]) -> list[GridRow]:
    """Level-0 nodes, calculated rows and total/subtotal rows stay visible."""
    visible_styles = {RowStyle.TOTAL.value, RowStyle.SUBTOTAL.value}
    out = []
    for row in rows:
        always = (
            row.always_visible
            or (row.level == 0 and row.type == "category")
            or row.type == "calculated"
            or row.style in visible_styles
        )
        out.append(dataclasses.replace(row, always_visible=always) if always else row)
    return out


def insert_calculated_metrics(
    rows: Sequence[GridRow], calculated: Sequence[LayoutItem],
) -> list[GridRow]:
    """
    Add calculated layout rows (amounts filled in later) and order
    everything by ``order``; rows without an order keep their place at
    the end in input order.
    """
    metric_rows = [
        GridRow(
            label=item.label or "Metric",
            type="calculated",
            style=(
                RowStyle.METRIC.value if item.style is RowStyle.NORMAL else item.style.value
            ),
            order=item.order,
            format=item.format,
            hierarchy=("_METRICS_", item.label or "Metric"),
            always_visible=True,
            metadata={"expression": item.expression},
        )
        for item in calculated
    ]
    combined = list(rows) + metric_rows
    return sorted(
        combined,
        key=lambda r: r.order if r.order is not None else float("inf"),
    )
