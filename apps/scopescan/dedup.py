"""
Semantic deduplication of photo-analysis findings.

Findings that mention the same object with the same problem ("Leaking
faucet", "faucet leak detected") collapse into one item carrying the
photo IDs of every duplicate.
"""
import re
from functools import cmp_to_key
from typing import Callable, Dict, List

STOP_WORDS = frozenset([
    "a", "an", "the", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "must", "shall", "can", "need", "needs",
    "to", "of", "in", "for", "on", "with", "at", "by", "from", "or", "and",
    "possibly", "maybe", "likely", "detected", "issue", "damage", "problem",
    "some", "this", "that", "it", "its", "there", "here", "very", "just",
])

OBJECT_KEYWORDS = (
    "faucet", "sink", "toilet", "tub", "shower", "bathtub", "drain", "pipe",
    "wall", "ceiling", "floor", "door", "window", "cabinet", "counter",
    "light", "outlet", "switch", "fixture", "handle", "knob", "hinge",
    "trim", "baseboard", "molding", "tile", "grout", "caulk", "paint",
)

PROBLEM_KEYWORDS = (
    "leak", "leaking", "leaky", "drip", "dripping",
    "stain", "stained", "staining", "discolor", "discolored",
    "crack", "cracked", "broken", "damage", "damaged",
    "peel", "peeling", "chip", "chipped", "worn", "wear",
    "rust", "rusty", "corrode", "corroded", "corrosion",
    "mold", "mildew", "rot", "rotted", "rotting",
    "loose", "missing", "dated", "old", "outdated",
    "replace", "replacement", "repair", "fix", "upgrade",
    "clean", "cleaning", "refinish", "refinishing",
)

CONFIDENCE_TIE_THRESHOLD = 0.1

_NON_WORD = re.compile(r"[^a-z0-9\s]")


def extract_keywords(text: str) -> List[str]:
    """Sorted unique words longer than two characters, minus filler words."""
    words = _NON_WORD.sub(" ", (text or "").lower()).split()
    return sorted({w for w in words if len(w) > 2 and w not in STOP_WORDS})


def _matches(word: str, vocabulary) -> bool:
    return any(word in k or k in word for k in vocabulary)


def semantic_key(text: str) -> str:
    """'objects:problems' key, e.g. 'faucet:leaking' or 'general:issue'."""
    keywords = extract_keywords(text)
    objects = [k for k in keywords if _matches(k, OBJECT_KEYWORDS)]
    problems = [k for k in keywords if _matches(k, PROBLEM_KEYWORDS)]
    object_key = "+".join(objects) if objects else "general"
    problem_key = "+".join(problems) if problems else "issue"
    return f"{object_key}:{problem_key}"


def _pick_best(group: List[Dict], text_of: Callable[[Dict], str]) -> Dict:
    def compare(a, b):
        a_damage = a.get("category") == "damage"
        b_damage = b.get("category") == "damage"
        if a_damage != b_damage:
            return -1 if a_damage else 1

        a_conf = a.get("confidence") or 0
        b_conf = b.get("confidence") or 0
        if abs(a_conf - b_conf) > CONFIDENCE_TIE_THRESHOLD:
            return -1 if a_conf > b_conf else 1

        return len(text_of(a)) - len(text_of(b))

    return sorted(group, key=cmp_to_key(compare))[0]


def deduplicate_items(items: List[Dict], text_of: Callable[[Dict], str]) -> List[Dict]:
    """
    Collapse items that share a semantic key.

    Groups keep first-seen order. A group of one is returned as-is; larger
    groups are represented by a copy of their best item (damage category,
    then clearly higher confidence, then shorter text) whose photo_ids is
    the ordered union of the group's photo IDs. Input items are not modified.
    """
    groups: Dict[str, List[Dict]] = {}
    for item in items:
        groups.setdefault(semantic_key(text_of(item)), []).append(item)

    result = []
    for group in groups.values():
        if len(group) == 1:
            result.append(group[0])
            continue

        photo_ids = []
        for item in group:
            for photo_id in item.get("photo_ids") or []:
                if photo_id not in photo_ids:
                    photo_ids.append(photo_id)

        result.append({**_pick_best(group, text_of), "photo_ids": photo_ids})

    return result


def deduplicate_findings(findings: List[Dict]) -> List[Dict]:
    return deduplicate_items(findings, lambda finding: finding.get("issue") or "")
