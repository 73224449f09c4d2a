"""
Candidate Matching

Heuristics for picking one directory candidate out of a search result pool:
lookup id sanitization, email match, name similarity scoring, DOB parsing.
"""
import re
import unicodedata
from typing import List, Optional, Tuple

from ...config import ResolverSettings
from ...models.domain import DirectoryCandidate, PartialDate

# Name similarity scores
SCORE_EXACT = 100
SCORE_LAST_NAME_AND_PREFIX = 85
SCORE_TOKEN_OVERLAP = 60
TOKEN_OVERLAP_THRESHOLD = 0.5


def sanitize_lookup_id(raw: Optional[str]) -> str:
    """Trim, collapse whitespace, drop invisible characters, strip trailing punctuation."""
    s = str(raw or "").strip()
    s = re.sub(r"[\s\u200b\u00a0]+", " ", s)
    s = s.replace("\u200b", "").replace("\u00a0", "")
    s = re.sub(r"[.,;:]+$", "", s)
    return s.strip()


def normalize_email(s: Optional[str]) -> str:
    return str(s or "").strip().lower()


def normalize_name(s: Optional[str]) -> str:
    decomposed = unicodedata.normalize("NFD", str(s or ""))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    lowered = re.sub(r"[^a-z\s]", " ", stripped.lower())
    return re.sub(r"\s+", " ", lowered).strip()


def split_name(normalized: str) -> Tuple[str, str]:
    """(first, last); everything before the final token is the first name."""
    parts = normalized.split()
    if not parts:
        return "", ""
    if len(parts) == 1:
        return parts[0], ""
    return " ".join(parts[:-1]), parts[-1]


def score_name(candidate_name: Optional[str], expected_name: Optional[str]) -> int:
    c = normalize_name(candidate_name)
    e = normalize_name(expected_name)
    if not c or not e:
        return 0
    if c == e:
        return SCORE_EXACT

    c_first, c_last = split_name(c)
    e_first, e_last = split_name(e)
    if c_last and e_last and c_last == e_last:
        if c_first.startswith(e_first) or e_first.startswith(c_first):
            return SCORE_LAST_NAME_AND_PREFIX

    c_tokens = set(c.split(" "))
    e_tokens = set(e.split(" "))
    inter = len(c_tokens & e_tokens)
    jaccard = inter / max(1, len(c_tokens) + len(e_tokens) - inter)
    if jaccard >= TOKEN_OVERLAP_THRESHOLD:
        return SCORE_TOKEN_OVERLAP
    return 0


def parse_dob(text: Optional[str]) -> Optional[PartialDate]:
    """
    Parse a user-entered date of birth.

    Accepts YYYY-MM-DD, DD/MM/YYYY (any non-digit separator), YYYY-MM and YYYY.
    """
    s = str(text or "").strip()
    if not s:
        return None
    parts = [p for p in re.split(r"[^0-9]+", s) if p]
    try:
        if len(parts) == 3:
            if len(parts[0]) == 4:
                return PartialDate(int(parts[0]), int(parts[1]) or None, int(parts[2]) or None)
            if len(parts[2]) == 4:
                return PartialDate(int(parts[2]), int(parts[1]) or None, int(parts[0]) or None)
        if len(parts) == 2 and len(parts[0]) == 4:
            return PartialDate(int(parts[0]), int(parts[1]) or None)
        if len(parts) == 1 and len(parts[0]) == 4:
            return PartialDate(int(parts[0]))
    except ValueError:
        return None
    return None


def exclude_lookup_collisions(results: List[DirectoryCandidate], search_id: str) -> List[DirectoryCandidate]:
    """Drop candidates whose own lookup id equals the query id."""
    return [r for r in results if (r.lookup_id or "") != search_id]


def pick_candidate(
    pool: List[DirectoryCandidate],
    email: Optional[str],
    name: Optional[str],
    settings: ResolverSettings,
) -> Optional[DirectoryCandidate]:
    """
    Resolve a single candidate by email, then by name score.

    Returns None when the pool stays ambiguous.
    """
    if len(pool) <= 1:
        return pool[0] if pool else None

    wanted_email = normalize_email(email)
    if wanted_email:
        for r in pool:
            if normalize_email(r.email) == wanted_email:
                return r

    if not name:
        return None

    scored = sorted(((score_name(r.name, name), r) for r in pool), key=lambda x: x[0], reverse=True)
    top_score, top = scored[0]
    if top_score <= 0:
        return None
    runner_up = scored[1][0] if len(scored) > 1 else 0
    if top_score >= settings.accept_score or top_score - runner_up >= settings.min_margin:
        return top

    _, expected_last = split_name(normalize_name(name))
    if expected_last:
        same_last = [r for _, r in scored if split_name(normalize_name(r.name))[1] == expected_last]
        if len(same_last) == 1:
            return same_last[0]
    return None
