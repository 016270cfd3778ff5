"""
Classification Rules - The product-identity contract as an ordered table.

Each rule pairs a title matcher with the exclusion reason it produces. The
classifier walks CLASSIFICATION_RULES top to bottom and the first rule that
matches decides the listing's bucket, so rule order is precedence:

    1. graded            -> excluded "graded"
    2. lot               -> excluded "lot"
    3. wrong product     -> excluded "wrong product"
    4. IP auto           -> excluded "IP auto" (never a fallback)
    5. numbered parallel -> excluded, unless the fallback signature matches
    6. named parallel    -> excluded, unless the fallback signature matches
    7. base default      -> admissible as base

A title like "PSA 10 lot of 3" therefore reports "graded", not "lot".

Matching is case-insensitive. Word tokens match on word boundaries (with an
optional plural "s") so "red" never fires on "Jared" and "lot" never fires
on "Pilots". Punctuation joiners ("& ", " and ", " + ") are matched as literal
fragments of the space-padded title.
"""
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from core.models.sale import ExclusionReason


# ============================================================================
# TOKEN TABLES
# ============================================================================

GRADED_TOKENS = [
    "psa", "bgs", "sgc", "cgc", "hga", "csg", "beckett",
    "gem mint", "gem mt 10", "mint 9", "perfect 10", "pristine",
]

LOT_TOKENS = ["lot", "bundle", "set of", "collection of", "group"]
LOT_JOINERS = ["& ", " and ", " + "]
LOT_QUANTITY_PATTERNS = [
    r"[(\[]\s*(?:[2-9]|[1-9]\d)\s*[)\]]",         # (3) [12], never (2023)
    r"[(\[]\s*(?:x\d+|\d+x)\s*[)\]]",             # (x2) [2x]
    r"(?<![a-z0-9])x\d+\b",                       # x2
    r"[(\[]\s*\d+\s*cards?\s*[)\]]",              # (2 cards)
    r"(?<![a-z0-9])[2-9]\s*cards?\b",             # 3 cards
    r"(?<![a-z0-9])\d{2,}\s*cards?\b",            # 10 cards
]

WRONG_PRODUCT_TOKENS = [
    "topps chrome", "panini", "donruss", "prizm", "contenders", "leaf",
    "sterling", "heritage", "finest", "arizona fall league", "fall league",
    "aflac", "redemption", "vip", "relic", "patch", "bunt", "digital", "nft",
    "virtual", "bowman u", "bowman university", "mega", "class of",
]

IP_AUTO_TOKENS = [
    "ip", "ip auto", "in person", "in-person", "signed in", "signed at",
    "signed by", "signed card", "signed", "hand signed", "hand-signed",
    "authentic auto", "convention", "meet and greet", "autograph event",
    "signing event",
]

SERIAL_NUMBER_PATTERN = r"/\d{1,4}\b"

COLORWAY_TOKENS = [
    "refractor", "shimmer", "speckle", "mojo", "lava", "wave", "sapphire",
    "aqua", "sky blue", "purple", "blue", "green", "gold", "orange", "red",
    "yellow", "pink", "black", "atomic", "prism", "hyper", "x-fractor",
]

UNCLEAR_PRICING_TOKENS = ["obo", "or best offer", "best offer accepted"]


# ============================================================================
# MATCHERS
# ============================================================================

# A matcher takes a lowercased title and returns the fragment it matched on
Matcher = Callable[[str], Optional[str]]


def _word_pattern(token: str) -> "re.Pattern":
    return re.compile(r"(?<![a-z0-9])" + re.escape(token) + r"s?(?![a-z])")


def word_matcher(tokens: Sequence[str]) -> Matcher:
    """Match any token as a whole word (plural "s" allowed), first token wins."""
    compiled: List[Tuple[str, "re.Pattern"]] = [(t, _word_pattern(t)) for t in tokens]

    def match(title: str) -> Optional[str]:
        for token, pattern in compiled:
            if pattern.search(title):
                return token
        return None

    return match


def fragment_matcher(fragments: Sequence[str]) -> Matcher:
    """Match literal fragments against the space-padded title."""
    def match(title: str) -> Optional[str]:
        padded = f" {title} "
        for fragment in fragments:
            if fragment in padded:
                return fragment
        return None

    return match


def pattern_matcher(patterns: Sequence[str]) -> Matcher:
    compiled = [re.compile(p) for p in patterns]

    def match(title: str) -> Optional[str]:
        for pattern in compiled:
            found = pattern.search(title)
            if found:
                return found.group(0)
        return None

    return match


def any_of(*matchers: Matcher) -> Matcher:
    def match(title: str) -> Optional[str]:
        for matcher in matchers:
            token = matcher(title)
            if token is not None:
                return token
        return None

    return match


def always(title: str) -> Optional[str]:
    return ""


# ============================================================================
# RULE TABLE
# ============================================================================

@dataclass(frozen=True)
class FallbackSignature:
    """
    The one numbered parallel accepted when a player has no base sales:
    a refractor from the program's fixed print run.
    """
    token: str = "refractor"
    print_run: str = "/499"

    def matches(self, title: str) -> bool:
        return (
            _word_pattern(self.token).search(title) is not None
            and re.search(re.escape(self.print_run) + r"\b", title) is not None
        )


FALLBACK_SIGNATURE = FallbackSignature()


@dataclass(frozen=True)
class ClassificationRule:
    """
    One row of the classification table.

    Attributes:
        name: Rule identifier recorded on the classified listing
        reason: Exclusion reason, or None for the base default
        matcher: Returns the matched title fragment, or None
        fallback: Signature that turns a match into a fallback variant
        sweep: Whether the stored-data sweep re-applies this rule
    """
    name: str
    reason: Optional[ExclusionReason]
    matcher: Matcher
    fallback: Optional[FallbackSignature] = None
    sweep: bool = False

    def match(self, title: str) -> Optional[str]:
        return self.matcher(title)


GRADED_RULE = ClassificationRule(
    name="graded",
    reason=ExclusionReason.GRADED,
    matcher=word_matcher(GRADED_TOKENS),
    sweep=True,
)

LOT_RULE = ClassificationRule(
    name="lot",
    reason=ExclusionReason.LOT,
    matcher=any_of(
        word_matcher(LOT_TOKENS),
        fragment_matcher(LOT_JOINERS),
        pattern_matcher(LOT_QUANTITY_PATTERNS),
    ),
    sweep=True,
)

WRONG_PRODUCT_RULE = ClassificationRule(
    name="wrong_product",
    reason=ExclusionReason.WRONG_PRODUCT,
    matcher=word_matcher(WRONG_PRODUCT_TOKENS),
    sweep=True,
)

IP_AUTO_RULE = ClassificationRule(
    name="ip_auto",
    reason=ExclusionReason.IP_AUTO,
    matcher=word_matcher(IP_AUTO_TOKENS),
    sweep=True,
)

NUMBERED_PARALLEL_RULE = ClassificationRule(
    name="numbered_parallel",
    reason=ExclusionReason.NUMBERED_PARALLEL,
    matcher=pattern_matcher([SERIAL_NUMBER_PATTERN]),
    fallback=FALLBACK_SIGNATURE,
)

COLORWAY_RULE = ClassificationRule(
    name="colorway",
    reason=ExclusionReason.PARALLEL,
    matcher=word_matcher(COLORWAY_TOKENS),
    fallback=FALLBACK_SIGNATURE,
)

# Anything not excluded above is trusted as a base autograph
BASE_VARIANT_DEFAULT = ClassificationRule(
    name="base_default",
    reason=None,
    matcher=always,
)

CLASSIFICATION_RULES: List[ClassificationRule] = [
    GRADED_RULE,
    LOT_RULE,
    WRONG_PRODUCT_RULE,
    IP_AUTO_RULE,
    NUMBERED_PARALLEL_RULE,
    COLORWAY_RULE,
    BASE_VARIANT_DEFAULT,
]

UNCLEAR_PRICING_RULE = ClassificationRule(
    name="unclear_pricing",
    reason=ExclusionReason.UNCLEAR_PRICING,
    matcher=word_matcher(UNCLEAR_PRICING_TOKENS),
    sweep=True,
)

SWEEP_RULES: List[ClassificationRule] = [
    rule for rule in CLASSIFICATION_RULES if rule.sweep
] + [UNCLEAR_PRICING_RULE]
