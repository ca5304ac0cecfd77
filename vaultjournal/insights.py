# -*- coding: utf-8 -*-
"""Read-only statistics and history listing over a decrypted journal.

Pure functions of a :class:`JournalDocument`; nothing here touches storage
or the network.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date as Date
from typing import Dict, List, Optional, Tuple

from .models import MOOD_MAX, MOOD_MIN, Entry, JournalDocument

TOP_TAGS = 10
RECENT_ENTRIES = 5


@dataclass
class JournalInsights:
    total_entries: int
    first_date: Optional[str]
    last_date: Optional[str]
    average_mood: Optional[float]
    mood_distribution: Dict[int, int] = field(default_factory=dict)
    top_tags: List[Tuple[str, int]] = field(default_factory=list)
    energy_drained_count: int = 0
    energy_gained_count: int = 0
    recent: List[Entry] = field(default_factory=list)

    def mood_percentage(self, scale: int) -> float:
        """Share of rated entries with mood *scale*, 0..100."""
        rated = sum(self.mood_distribution.values())
        return 100.0 * self.mood_distribution.get(scale, 0) / rated if rated else 0.0


def compute_insights(doc: JournalDocument) -> JournalInsights:
    """Totals, date range, mood spread, top tags and energy-field counts."""
    entries = list(doc.entries.values())
    moods = [e.mood for e in entries if e.mood > 0]
    dates = sorted(e.date for e in entries)

    tag_counts: Counter = Counter()
    for entry in entries:
        tag_counts.update(entry.tags)

    return JournalInsights(
        total_entries=len(entries),
        first_date=dates[0] if dates else None,
        last_date=dates[-1] if dates else None,
        average_mood=round(sum(moods) / len(moods), 1) if moods else None,
        mood_distribution={s: moods.count(s) for s in range(MOOD_MIN, MOOD_MAX + 1)},
        top_tags=tag_counts.most_common(TOP_TAGS),
        energy_drained_count=sum(1 for e in entries if e.energy_drained.strip()),
        energy_gained_count=sum(1 for e in entries if e.energy_gained.strip()),
        recent=sorted(entries, key=lambda e: e.date, reverse=True)[:RECENT_ENTRIES],
    )


def history_by_month(doc: JournalDocument) -> List[Tuple[str, List[Entry]]]:
    """``[(YYYY-MM, entries)]``, months and entries both newest first."""
    months: Dict[str, List[Entry]] = {}
    for entry in sorted(doc.entries.values(), key=lambda e: e.date, reverse=True):
        months.setdefault(entry.date[:7], []).append(entry)
    return list(months.items())


def month_label(month_key: str) -> str:
    """``2024-03`` -> ``March 2024``."""
    year, month = month_key.split("-")
    return Date(int(year), int(month), 1).strftime("%B %Y")
