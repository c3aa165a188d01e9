from __future__ import annotations

from typing import Optional, Sequence

EDITORS = (
    "Macky", "Coleen", "Jason", "Emerson", "Rovic", "Manjo", "Alan", "Faye",
    "Glenn", "Lorenz", "Joseph", "Paulo", "Miggy", "Normand", "Jazz", "Ace",
    "Max", "Jao",
)

MASTERS = (
    "Poch", "Bernie", "Aileen", "Sae", "Dan", "Mico", "RC", "Nickie",
    "Justin", "Chiqui", "Jann", "Tamara", "Sieg", "Jancel", "Ralph",
)

QC_PERSONNEL = ("Jomar", "Sarah", "Rein", "Lauraine")


def _prefix_match(raw: str, name: str) -> bool:
    left = raw.lower()
    right = name.strip().lower()
    if not left or not right:
        return False
    return left.startswith(right) or right.startswith(left)


def find_canonical(raw: Optional[str], canonical: Sequence[str]) -> Optional[str]:
    """Return the first roster name that is a case-insensitive prefix of ``raw`` or vice versa.

    Roster order is the tie-break when more than one name matches.
    """
    text = (raw or "").strip()
    for name in canonical:
        if _prefix_match(text, name):
            return name
    return None


def resolve_person_name(raw: Optional[str], canonical: Sequence[str]) -> str:
    text = (raw or "").strip()
    match = find_canonical(text, canonical)
    return match if match is not None else text
