"""
Weekly raid catalog: gold per difficulty and item-level gating.

A character only clears gold on its three best-paying raids each week, so
weekly raid rows outside a character's top 3 are not counted for it.
Rows with a minimum item level are likewise skipped for characters below it.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .schemas import Character, TaskRow

WEEKLY_GOLD_RAIDS = 3


@dataclass(frozen=True)
class Difficulty:
    name: str
    min_ilvl: int
    gold: int


@dataclass(frozen=True)
class Raid:
    key: str
    titles: Tuple[str, ...]  # task titles that refer to this raid
    diffs: Tuple[Difficulty, ...]


@dataclass(frozen=True)
class RaidPick:
    raid: str
    difficulty: str
    gold: int


RAID_CATALOG: Tuple[Raid, ...] = (
    Raid("ACT1", ("Act 1", "1막"), (Difficulty("Normal", 1660, 11500), Difficulty("Hard", 1680, 18000))),
    Raid("ACT2", ("Act 2", "2막"), (Difficulty("Normal", 1670, 18000), Difficulty("Hard", 1690, 23000))),
    Raid("ACT3", ("Act 3", "3막"), (Difficulty("Normal", 1680, 21000), Difficulty("Hard", 1700, 27000))),
    Raid("ACT4", ("Act 4", "4막"), (Difficulty("Normal", 1700, 33000), Difficulty("Hard", 1720, 42000))),
    Raid("FINAL", ("Final Act", "종막"), (Difficulty("Normal", 1710, 40000), Difficulty("Hard", 1730, 52000))),
    Raid(
        "SERCA",
        ("Serca", "세르카"),
        (Difficulty("Normal", 1710, 35000), Difficulty("Hard", 1730, 44000), Difficulty("Nightmare", 1740, 54000)),
    ),
)

_RAID_BY_TITLE: Dict[str, Raid] = {title: raid for raid in RAID_CATALOG for title in raid.titles}

# rows hidden below these item levels (raid entry levels + misc content)
TASK_MIN_ILVL: Dict[str, int] = {
    **{title: min(d.min_ilvl for d in raid.diffs) for raid in RAID_CATALOG for title in raid.titles},
    "Hour of Sand": 1730,
    "할의 모래시계": 1730,
    "Unlock 1": 1640,
    "1해금": 1640,
    "Unlock 2": 1680,
    "2해금": 1680,
    "Unlock 3": 1700,
    "3해금": 1700,
    "Unlock 4": 1720,
    "4해금": 1720,
}


def parse_item_level(raw: Optional[str]) -> float:
    """Item level as a number: "1,712.5" -> 1712.5; blank or non-numeric -> 0."""
    try:
        n = float(str(raw or "").replace(",", "").strip())
    except ValueError:
        return 0.0
    return n if math.isfinite(n) else 0.0


def raid_for_title(title: str) -> Optional[Raid]:
    return _RAID_BY_TITLE.get(title)


def best_difficulty(ilvl: float, raid: Raid) -> Optional[Difficulty]:
    available = [d for d in raid.diffs if ilvl >= d.min_ilvl]
    if not available:
        return None
    return max(available, key=lambda d: d.gold)


def weekly_top3_gold(item_level: Optional[str]) -> Tuple[int, List[RaidPick]]:
    """(gold sum, picks) over the best-paying raids a character can enter."""
    ilvl = parse_item_level(item_level)
    picks = []
    for raid in RAID_CATALOG:
        best = best_difficulty(ilvl, raid)
        if best is not None:
            picks.append(RaidPick(raid.key, best.name, best.gold))
    top = sorted(picks, key=lambda p: p.gold, reverse=True)[:WEEKLY_GOLD_RAIDS]
    return sum(p.gold for p in top), top


def is_task_eligible(task: TaskRow, character: Character) -> bool:
    ilvl = parse_item_level(character.item_level)
    min_ilvl = TASK_MIN_ILVL.get(task.title)
    if min_ilvl is not None and ilvl < min_ilvl:
        return False

    raid = raid_for_title(task.title)
    if raid is None or task.period != "WEEKLY":
        return True
    if ilvl <= 0:
        return False
    _, top = weekly_top3_gold(character.item_level)
    return raid.key in {p.raid for p in top}
