"""Tabular views of the cross-project people rollup."""
from __future__ import annotations

from typing import List

import pandas as pd

from engine.aggregation_engine import PersonStat


def format_path(path) -> str:
    # The root node is usually unnamed; skip empty segments.
    return " / ".join(p for p in path if p)


def people_frame(stats: List[PersonStat]) -> pd.DataFrame:
    """One row per person: total, share of the grand total, source count."""
    grand_total = sum(s.total_amount for s in stats)
    rows = [
        {
            "name": s.name,
            "total_amount": s.total_amount,
            "share": s.total_amount / grand_total if grand_total else 0.0,
            "sources": len(s.sources),
        }
        for s in stats
    ]
    return pd.DataFrame(rows, columns=["name", "total_amount", "share", "sources"])


def sources_frame(stats: List[PersonStat]) -> pd.DataFrame:
    """One row per contributing leaf, in rollup order."""
    rows = [
        {"name": s.name, "path": format_path(src.path), "amount": src.amount}
        for s in stats
        for src in s.sources
    ]
    return pd.DataFrame(rows, columns=["name", "path", "amount"])
