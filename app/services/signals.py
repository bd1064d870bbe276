"""
Preference signal extraction.

Turns the guest's free-text notes and vibe tags into a small, bounded set of
structured signals used to steer search queries. Pure and deterministic: the
same (notes, vibes) always yields the same NoteSignals.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Sequence, Tuple

MAX_NOTES_CHARS = 280

MAX_CUISINES = 6
MAX_NIGHTLIFE = 5
MAX_ACTIVITIES = 5
MAX_INCLUDE_KEYWORDS = 12
MAX_AVOID_KEYWORDS = 6
MAX_AREA_HINTS = 3


@dataclass(frozen=True)
class NoteSignals:
    """Structured preference facts derived once per request"""
    noCoffee: bool = False
    wantsBbq: bool = False
    wantsIceCream: bool = False
    kidFriendly: bool = False
    cuisines: Tuple[str, ...] = ()
    nightlife: Tuple[str, ...] = ()
    activities: Tuple[str, ...] = ()
    includeKeywords: Tuple[str, ...] = ()
    avoidKeywords: Tuple[str, ...] = ()
    areaHints: Tuple[str, ...] = ()


CUISINE_TERMS = (
    "breakfast tacos", "tex mex", "tacos", "mexican", "bbq", "barbecue", "brisket",
    "pizza", "italian", "sushi", "ramen", "japanese", "thai", "vietnamese", "pho",
    "indian", "chinese", "korean", "burgers", "seafood", "steak", "vegan",
    "vegetarian", "gluten free", "brunch", "mediterranean", "greek", "french",
    "southern", "cajun", "soul food", "donuts", "pastries",
)

NIGHTLIFE_TERMS = (
    "live music", "cocktail", "cocktails", "speakeasy", "rooftop", "wine bar",
    "wine", "brewery", "breweries", "craft beer", "jazz", "karaoke", "dancing",
    "comedy", "dive bar", "bar", "bars", "club",
)

ACTIVITY_TERMS = (
    "museum", "museums", "art", "gallery", "history", "missions", "park", "parks",
    "hiking", "hike", "trail", "kayak", "zoo", "aquarium", "botanical garden",
    "garden", "river walk", "riverwalk", "shopping", "market", "golf", "spa",
    "theme park", "bowling", "arcade", "boat tour", "photography",
)

# Named sub-areas of the home city; hint text -> canonical hint
AREA_HINTS = (
    ("downtown", "downtown"),
    ("pearl", "pearl"),
    ("southtown", "southtown"),
    ("king william", "king william"),
    ("alamo heights", "alamo heights"),
    ("river walk", "river walk"),
    ("riverwalk", "river walk"),
    ("stone oak", "stone oak"),
    ("the rim", "the rim"),
    ("la cantera", "la cantera"),
    ("boerne", "boerne"),
    ("new braunfels", "new braunfels"),
    ("schertz", "schertz"),
)

NO_COFFEE_PATTERN = re.compile(
    r"\b(no coffee|dont like coffee|do not like coffee|hate coffee|avoid coffee|"
    r"skip coffee|no caffeine|not a coffee)\b"
)
BBQ_PATTERN = re.compile(r"\b(bbq|barbecue|brisket|ribs|smoked)\b")
ICE_CREAM_PATTERN = re.compile(r"\b(ice cream|gelato|frozen custard|milkshake|paletas)\b")
KID_PATTERN = re.compile(r"\b(kids|kid|children|child|family|toddler|toddlers|stroller)\b")
COFFEE_WORDS = frozenset({"coffee", "caffeine", "espresso", "latte"})

# Negation rules: pattern -> captured group holding the avoided word.
AVOID_RULES: List[Tuple[Pattern, int]] = [
    (re.compile(r"\b(?:avoid|avoiding|skip|skipping)\s+([a-z][a-z]+)"), 1),
    (re.compile(r"\b(?:dont|do not)\s+(?:want|like|need)\s+(?:any\s+)?([a-z][a-z]+)"), 1),
    (re.compile(r"\bno\s+(?:more\s+)?([a-z][a-z]+)"), 1),
    (re.compile(r"\b(?:hate|allergic to|not into)\s+([a-z][a-z]+)"), 1),
]

STOP_WORDS = frozenset({
    "i", "we", "my", "me", "our", "us", "you", "the", "a", "an", "and", "or", "but",
    "to", "of", "for", "with", "on", "in", "at", "by", "from", "is", "are", "was",
    "be", "it", "its", "this", "that", "some", "any", "more", "most", "just",
    "like", "love", "want", "wants", "need", "dont", "do", "not", "no", "avoid",
    "avoiding", "skip", "skipping", "hate", "please", "prefer", "really", "very",
    "also", "maybe", "something", "somewhere", "place", "places", "good", "great",
    "nice", "best", "have", "has", "get", "go", "going", "can", "will", "would",
    "there", "them", "they", "into", "allergic", "lot", "lots", "stuff", "things",
    "today", "tomorrow", "tonight", "time", "day", "spot", "spots",
})


def normalize(text: Optional[str]) -> str:
    """Lowercase, drop apostrophes, strip punctuation, collapse whitespace."""
    s = (text or "").lower().replace("'", "").replace("’", "")
    s = re.sub(r"[^a-z0-9\s]", " ", s)
    return re.sub(r"\s+", " ", s).strip()


def _dedupe(items: Sequence[str], limit: int) -> Tuple[str, ...]:
    out: List[str] = []
    for item in items:
        if item and item not in out:
            out.append(item)
        if len(out) >= limit:
            break
    return tuple(out)


def _match_terms(text: str, vocabulary: Sequence[str], limit: int) -> Tuple[str, ...]:
    found = [t for t in vocabulary if re.search(rf"\b{re.escape(t)}\b", text)]
    return _dedupe(found, limit)


def _avoid_terms(text: str) -> Tuple[str, ...]:
    # Keep first-occurrence order across all rules
    hits: List[Tuple[int, str]] = []
    for pattern, group in AVOID_RULES:
        for m in pattern.finditer(text):
            word = m.group(group)
            if word not in STOP_WORDS:
                hits.append((m.start(group), word))
    hits.sort()
    return _dedupe([w for _, w in hits], MAX_AVOID_KEYWORDS)


def _include_terms(text: str, exclude: set) -> Tuple[str, ...]:
    out: List[str] = []
    prev: Optional[str] = None
    for tok in text.split(" "):
        content = (
            3 <= len(tok) <= 22
            and tok not in STOP_WORDS
            and tok not in exclude
            and not tok.isdigit()
        )
        if not content:
            prev = None
            continue
        out.append(tok)
        if prev:
            out.append(f"{prev} {tok}")
        prev = tok
    return _dedupe(out, MAX_INCLUDE_KEYWORDS)


def _wanted(pattern: Pattern, text: str, avoid: Sequence[str]) -> bool:
    """True if some match of pattern is not itself the target of an avoid rule."""
    return any(m.group(0).split(" ")[0] not in avoid for m in pattern.finditer(text))


def extract_signals(notes: Optional[str], vibes: Sequence[str]) -> NoteSignals:
    text = normalize((notes or "")[:MAX_NOTES_CHARS])
    vibe_text = normalize(" ".join(vibes or []))
    both = f"{text} {vibe_text}".strip()

    avoid = _avoid_terms(text)

    no_coffee = bool(NO_COFFEE_PATTERN.search(text))
    wants_bbq = _wanted(BBQ_PATTERN, text, avoid) or bool(re.search(r"\bbbq\b", vibe_text))
    wants_ice_cream = _wanted(ICE_CREAM_PATTERN, text, avoid)
    kid_friendly = _wanted(KID_PATTERN, text, avoid) or bool(re.search(r"\bfamily\b", vibe_text))

    cuisines = tuple(c for c in _match_terms(both, CUISINE_TERMS, MAX_CUISINES * 2) if c not in avoid)[:MAX_CUISINES]
    nightlife = tuple(n for n in _match_terms(both, NIGHTLIFE_TERMS, MAX_NIGHTLIFE * 2) if n not in avoid)[:MAX_NIGHTLIFE]
    activities = tuple(a for a in _match_terms(both, ACTIVITY_TERMS, MAX_ACTIVITIES * 2) if a not in avoid)[:MAX_ACTIVITIES]

    matched_words = set()
    for term in cuisines + nightlife + activities:
        matched_words.update(term.split(" "))
    exclude = matched_words | set(avoid)
    if no_coffee:
        exclude |= COFFEE_WORDS
    include = _include_terms(text, exclude)

    areas = _dedupe([canonical for needle, canonical in AREA_HINTS if needle in text], MAX_AREA_HINTS)

    return NoteSignals(
        noCoffee=no_coffee,
        wantsBbq=wants_bbq,
        wantsIceCream=wants_ice_cream,
        kidFriendly=kid_friendly,
        cuisines=cuisines,
        nightlife=nightlife,
        activities=activities,
        includeKeywords=include,
        avoidKeywords=avoid,
        areaHints=areas,
    )
