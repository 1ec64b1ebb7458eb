"""
Safety Automation Pattern Classifier - Tiered regex screening of normalized text.
High-confidence families are explicit and first-person; medium-confidence families
are topical vocabulary that needs a second opinion before it counts as an emergency.
"""
from __future__ import annotations
import re
from dataclasses import dataclass, field

from .models import PatternConfidence, PatternMatch, SafetyCategory
from .normalizer import normalize_text

# Patterns run against normalize_text() output: lowercase, no punctuation,
# single spaces. "can't" arrives as "can t".
_RELATION = (
    r"(mother|father|mom|mum|dad|parents?|child|children|son|daughter|baby|wife|husband|"
    r"spouse|partner|fianc[eé]e?|(best\s+)?friend|brother|sister|grandmother|grandfather|"
    r"grandma|grandpa|grandparents?|aunt|uncle|cousin|loved\s+one)"
)
_SELF_HARM_VERB = (
    r"(kill(ing)?|harm(ing)?|hurt(ing)?|cut(ting)?|burn(ing)?|injur(e|ing)|hang(ing)?|"
    r"shoot(ing)?|drown(ing)?|starv(e|ing))"
)


def _compile(patterns: dict[str, str]) -> dict[str, re.Pattern]:
    return {name: re.compile(pattern, re.I) for name, pattern in patterns.items()}


CRISIS_HIGH_PATTERNS = _compile({
    "self_directed_harm": rf"\b{_SELF_HARM_VERB}\s+my\s*self\b",
    "end_own_life": r"\b(end(ing)?|take|taking)\s+my\s+(own\s+)?life\b",
    "death_wish": r"\b(want(ed)?|wanna)\s+to\s+die\b",
    "wish_dead": r"\bwish\b.{0,10}\bdead\b",
    "better_off_dead": r"\bbetter\s+off\s+dead\b",
    "no_reason_to_live": (
        r"\b(no\s+reason\s+to\s+live|not\s+worth\s+living|ending\s+it\s+all|"
        r"life\s+(is\s+not|isn\s*t)\s+worth|(can\s*t|cannot)\s+go\s+on)\b"
    ),
    "suicide": r"\bsuicid",
    "self_harm": r"\bself\s*(harm|injur|mutilat)",
    "lethal_means": r"\b(pills|jump\s+off)\s+to\s+die\b",
    "abuse_against_me": (
        r"\b(beats?|hits?|kicks?|chokes?|rapes?|raped|molests?|molested|abuses|abused|"
        r"sexually\s+assaulted|hitting|hurting)\s+me\b|\bbeing\s+hurt\s+by\b"
    ),
    "abuse_experienced": (
        r"\b(i\s+was|i\s+am|i\s+m|been|being|getting|got)\s+"
        r"(raped|molested|abused|beaten|sexually\s+assaulted)\b"
    ),
    "beating_me": r"\bbeating\s+me\b",
})

CRISIS_MEDIUM_PATTERNS = _compile({
    "abuse": r"\babus(e|ed|es|ing|ive)\b",
    "violence": r"\bviolen(ce|t)\b",
    "rape": r"\brap(e|ed|es|ing)\b",
    "sexual_assault": r"\bsexual(ly)?\s+assault",
    "molestation": r"\bmolest",
    "beaten": r"\bbeaten\b",
    "overdose": r"\boverdos(e|ed|ing)\b",
    "mutilation": r"\bmutilat",
})

GRIEF_HIGH_PATTERNS = _compile({
    "lost_relation": rf"\b(lost|losing|loss\s+of)\s+(my|a|our|the)\s+(dear\s+|beloved\s+)?{_RELATION}\b",
    "relation_died": (
        rf"\b{_RELATION}\s+(just\s+|recently\s+)?"
        r"(died|passed|passed\s+away|passed\s+on|is\s+gone|has\s+gone|left\s+us)\b"
    ),
    "death_of_relation": rf"\bdeath\s+of\s+(my|our|a|the)\s+(dear\s+|beloved\s+)?{_RELATION}\b",
    "grieving_relation": (
        r"\b(griev(e|ing)|mourn(ing)?)\s+(over|for|about)?\s*(the\s+(loss|death)\s+of\s+)?"
        rf"(my|our)\s+{_RELATION}\b"
    ),
    "funeral_of_relation": rf"\b(funeral|memorial|burial)\s+(service\s+)?(of|for)\s+(my|our)\s+{_RELATION}\b",
    "relation_buried": rf"\bmy\s+{_RELATION}\s+(was\s+)?(buried|laid\s+to\s+rest)\b",
})

GRIEF_MEDIUM_PATTERNS = _compile({
    "death_reference": r"\b(died|death|dying|deceased|passed\s+away|passed\s+on|passing\s+away)\b",
    "terminal_illness": r"\bterminal(ly\s+ill)?\b",
    "end_of_life": r"\b(end\s+of\s+life|end\s+stage|final\s+(days|hours|moments)|last\s+(days|hours))\b",
    "end_of_life_care": r"\b(hospice|palliative|comfort\s+care)\b",
    "limited_time": r"\b(not\s+(long|much\s+time)\s+(left\s+)?to\s+live|time\s+is\s+running\s+out|counting\s+(the\s+)?days)\b",
    "critical_condition": (
        r"\b((critically|seriously|very)\s+(ill|sick)|critical\s+condition|intensive\s+care|icu|"
        r"life\s+support|on\s+(a\s+)?ventilator)\b"
    ),
    "not_surviving": (
        r"\b((won\s*t|not\s+going\s+to|not\s+gonna)\s+make\s+it|"
        r"(losing|lost|gave\s+up)\s+(the|their|his|her)\s+(battle|fight)|"
        r"fighting\s+for\s+(life|their\s+life|his\s+life|her\s+life))\b"
    ),
    "suffering": r"\b(suffering|in\s+(so\s+much\s+)?pain)\b",
    "mourning": r"\b(grief|grieving|grieve|mourning|mourn|bereavement|bereaved)\b",
    "funeral": r"\b(funerals?|memorial|burial|buried|laying\s+to\s+rest|laid\s+to\s+rest)\b",
    "heartbreak": r"\b(heartbroken|heart\s+broken|devastated)\b",
    "absence": (
        r"\b(can\s*t\s+believe\s+(they\s+re|he\s+s|she\s+s|they\s+are|he\s+is|she\s+is)\s+gone|"
        r"miss\s+(them|him|her)\s+so\s+much|wish\s+(they|he|she)\s+(were|was)\s+(still\s+)?here|"
        r"(gone|taken)\s+too\s+soon|left\s+a\s+void|hole\s+in\s+my\s+heart|empty\s+without|"
        r"life\s+without\s+(them|him|her))\b"
    ),
    "departed": r"\b(departed|no\s+longer\s+with\s+us|gone\s+from\s+us|left\s+us)\b",
})


@dataclass(frozen=True)
class PatternTable:
    """High- and medium-confidence pattern families for one category."""
    category: SafetyCategory
    high: dict[str, re.Pattern] = field(default_factory=dict)
    medium: dict[str, re.Pattern] = field(default_factory=dict)


DEFAULT_PATTERN_TABLES: dict[SafetyCategory, PatternTable] = {
    SafetyCategory.CRISIS: PatternTable(
        SafetyCategory.CRISIS, CRISIS_HIGH_PATTERNS, CRISIS_MEDIUM_PATTERNS
    ),
    SafetyCategory.GRIEF: PatternTable(
        SafetyCategory.GRIEF, GRIEF_HIGH_PATTERNS, GRIEF_MEDIUM_PATTERNS
    ),
}


class PatternClassifier:
    """Evaluates a category's pattern table against normalized text."""

    def __init__(self, tables: dict[SafetyCategory, PatternTable] | None = None) -> None:
        self._tables = tables or DEFAULT_PATTERN_TABLES

    def match_high(self, normalized: str, category: SafetyCategory) -> PatternMatch:
        """Check only the high-confidence families."""
        return self._first_match(normalized, self._tables[category].high, PatternConfidence.HIGH)

    def match_medium(self, normalized: str, category: SafetyCategory) -> PatternMatch:
        """Check only the medium-confidence families."""
        return self._first_match(normalized, self._tables[category].medium, PatternConfidence.MEDIUM)

    def classify(self, text: str, category: SafetyCategory) -> PatternMatch:
        """Normalize text and return the highest tier that matches."""
        normalized = normalize_text(text)
        if not normalized:
            return PatternMatch()
        high = self.match_high(normalized, category)
        if high.detected:
            return high
        return self.match_medium(normalized, category)

    @staticmethod
    def _first_match(
        normalized: str, patterns: dict[str, re.Pattern], confidence: PatternConfidence
    ) -> PatternMatch:
        for name, pattern in patterns.items():
            if pattern.search(normalized):
                return PatternMatch(detected=True, confidence=confidence, pattern_name=name)
        return PatternMatch()
