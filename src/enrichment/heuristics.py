# src/enrichment/heuristics.py
"""Tier-0 heuristic analysis: free, deterministic, never fabricates.

Factual tags come from structured fields (species, age, explicit size,
colour terms, explicit compatibility). Behavioural tags come only from an
authentic, staff-written description; nothing about temperament or energy
is ever derived from the breed name. Breed is consulted only to infer the
species and, for the very smallest and very largest breeds, the size.
"""

from __future__ import annotations

import logging
import re

from pydantic import BaseModel

from pawmatch.core.models import AgeCategory, EnergyLevel, Item, SizeClass, Species

logger = logging.getLogger(__name__)


class HeuristicResult(BaseModel):
    """Output of ``analyze``."""

    tags: list[str]
    energy_level: EnergyLevel
    size_class: SizeClass
    age_category: AgeCategory


# === SPECIES ===

_SPECIES_BREED_KEYWORDS: list[tuple[Species, tuple[str, ...]]] = [
    ("Dog", (
        "retriever", "labrador", "shepherd", "terrier", "hound", "poodle", "pit",
        "bulldog", "beagle", "boxer", "husky", "chihuahua", "collie", "spaniel",
        "dachshund", "mastiff", "rottweiler",
    )),
    ("Cat", ("domestic", "siamese", "persian", "maine coon", "tabby", "ragdoll")),
    ("Reptile", ("lizard", "gecko", "turtle", "tortoise", "snake", "iguana")),
    ("Small & Furry", ("guinea pig", "hamster", "gerbil", "ferret", "chinchilla")),
    ("Rabbit", ("rabbit", "bunny", "lop")),
    ("Bird", ("bird", "parrot", "parakeet", "cockatiel", "finch")),
]

_SPECIES_TAGS: dict[str, Species] = {
    "dog": "Dog", "cat": "Cat", "bird": "Bird", "rabbit": "Rabbit",
    "reptile": "Reptile", "small & furry": "Small & Furry",
}


def infer_species(item: Item) -> Species | None:
    """Explicit species, else from upstream tags, else from breed keywords."""
    if item.species:
        return item.species
    for tag in item.tags:
        species = _SPECIES_TAGS.get(tag.strip().lower())
        if species:
            return species
    breed = item.breed.lower()
    for species, keywords in _SPECIES_BREED_KEYWORDS:
        if any(re.search(rf"\b{re.escape(k)}", breed) for k in keywords):
            return species
    return None


# === AGE ===


_AGE_LABELS: dict[str, AgeCategory] = {
    "baby": "Baby",
    "young": "Young",
    "adult": "Adult",
    "senior": "Senior",
}


def determine_age_category(age: str) -> AgeCategory:
    """Category from a label (Petfinder's "Baby".."Senior") or a duration.

    Months or weeks mean Baby; otherwise leading years: <2 Young, >=8 Senior.
    """
    text = (age or "").strip().lower()
    if text in _AGE_LABELS:
        return _AGE_LABELS[text]
    if "month" in text or "week" in text:
        return "Baby"
    match = re.search(r"\d+", text)
    if not match:
        return "Adult"
    years = int(match.group(0))
    if years < 2:
        return "Young"
    if years >= 8:
        return "Senior"
    return "Adult"


# === COLOUR ===

_COLOR_TERMS: list[tuple[str, str]] = [
    (r"\btabby", "Tabby"),
    (r"\bcalico", "Calico"),
    (r"\b(tortoiseshell|tortie)", "Tortoiseshell"),
    (r"\btuxedo", "Tuxedo"),
    (r"\bbrindle", "Brindle"),
    (r"\bmerle", "Merle"),
    (r"\bblack", "Black"),
    (r"\bwhite", "White"),
    (r"\borange", "Orange"),
    (r"\bgr[ae]y", "Gray"),
    (r"\bbrown", "Brown"),
    (r"\bcream", "Cream"),
]


def color_tags(color: str | None) -> list[str]:
    text = (color or "").lower()
    return [tag for pattern, tag in _COLOR_TERMS if re.search(pattern, text)]


# === DESCRIPTION ===

# Stems are matched at a word start ("hik" covers hike, hikes, hiking)
_DESCRIPTION_KEYWORDS: dict[str, tuple[str, ...]] = {
    "run": ("High Energy", "Active"),
    "hik": ("High Energy", "Active"),
    "activ": ("High Energy", "Active"),
    "play": ("Playful", "High Energy"),
    "couch": ("Chill", "Couch Potato"),
    "relax": ("Chill", "Low Energy"),
    "calm": ("Chill", "Low Energy"),
    "nap": ("Chill", "Low Energy"),
    "kid": ("Good with Kids",),
    "family": ("Good with Kids",),
    "child": ("Good with Kids",),
    "smart": ("Smart",),
    "train": ("Smart", "Trainable"),
    "gentle": ("Gentle", "Good with Kids"),
    "friendl": ("Friendly", "Social"),
    "vocal": ("Vocal", "Talkative"),
    "quiet": ("Quiet", "Low Energy"),
    "lap": ("Lap Pet", "Affectionate"),
    "cuddl": ("Affectionate", "Cuddly"),
}

_KEYWORD_PATTERNS = {
    stem: re.compile(rf"\b{stem}", re.IGNORECASE) for stem in _DESCRIPTION_KEYWORDS
}


def description_tags(item: Item) -> list[str]:
    """Behavioural tags from an authentic description; synthetic text yields none."""
    if item.is_synthetic_description or not item.description.strip():
        return []
    tags: list[str] = []
    for stem, traits in _DESCRIPTION_KEYWORDS.items():
        if _KEYWORD_PATTERNS[stem].search(item.description):
            tags.extend(traits)
    return tags


# === ENERGY ===

_HIGH_ENERGY_TAGS = {"High Energy", "Active", "Playful"}
_LOW_ENERGY_TAGS = {"Chill", "Low Energy", "Couch Potato", "Senior"}


def determine_energy_level(tags: list[str]) -> EnergyLevel:
    tag_set = set(tags)
    if tag_set & _HIGH_ENERGY_TAGS:
        return "High"
    if tag_set & _LOW_ENERGY_TAGS:
        return "Low"
    return "Moderate"


# === SIZE ===

_SIZE_ALIASES: dict[str, SizeClass] = {
    "s": "Small", "small": "Small",
    "m": "Medium", "medium": "Medium",
    "l": "Large", "large": "Large",
    "xl": "Extra Large", "x-large": "Extra Large", "extra large": "Extra Large",
    "extra-large": "Extra Large", "xlarge": "Extra Large",
}

_TOY_BREEDS = ("chihuahua", "yorkie", "yorkshire", "pomeranian", "maltese", "toy", "teacup")
_GIANT_BREEDS = (
    "great dane", "mastiff", "newfoundland", "saint bernard", "st. bernard",
    "wolfhound", "leonberger",
)


def normalize_size(value: str | None) -> SizeClass | None:
    """Map an upstream size label ('S', 'XL', 'X-LARGE', ...) to a SizeClass."""
    if not value:
        return None
    return _SIZE_ALIASES.get(value.strip().lower())


def determine_size(item: Item) -> SizeClass:
    """Explicit size, then description keywords, then breed extremes, else Medium."""
    explicit = normalize_size(item.size)
    if explicit:
        return explicit

    description = item.description.lower() if not item.is_synthetic_description else ""
    if re.search(r"\b(small|tiny|lap)\b", description):
        return "Small"
    if re.search(r"\b(large|big|giant)\b", description):
        return "Large"

    breed = item.breed.lower()
    if any(b in breed for b in _TOY_BREEDS):
        return "Small"
    if any(b in breed for b in _GIANT_BREEDS):
        return "Extra Large"
    return "Medium"


# === COMPATIBILITY ===


def compatibility_tags(item: Item) -> list[str]:
    compat = item.compatibility
    if compat is None:
        return []
    tags = []
    if compat.kids is True:
        tags.append("Good with Kids")
    if compat.dogs is True:
        tags.append("Good with Dogs")
    if compat.cats is True:
        tags.append("Good with Cats")
    return tags


# === ENTRY POINT ===


def analyze(item: Item) -> HeuristicResult:
    """Run every heuristic over ``item``.

    Tag order: species, age category, explicit size, colour terms,
    compatibility, then description traits. Duplicates are dropped, first
    occurrence wins.
    """
    tags: list[str] = []

    species = infer_species(item)
    if species:
        tags.append(species)

    age_category = determine_age_category(item.age)
    tags.append(age_category)

    explicit_size = normalize_size(item.size)
    if explicit_size:
        tags.append(explicit_size)

    tags.extend(color_tags(item.color))
    tags.extend(compatibility_tags(item))
    tags.extend(description_tags(item))

    tags = list(dict.fromkeys(tags))
    return HeuristicResult(
        tags=tags,
        energy_level=determine_energy_level(tags),
        size_class=determine_size(item),
        age_category=age_category,
    )


# === AI BIO TAGS ===

_BIO_KEYWORDS: dict[str, str] = {
    "loving": "Affectionate",
    "affectionate": "Affectionate",
    "playful": "Playful",
    "energetic": "High Energy",
    "calm": "Chill",
    "gentle": "Gentle",
    "loyal": "Loyal",
    "smart": "Smart",
    "clever": "Smart",
    "intelligent": "Smart",
    "friendly": "Friendly",
    "curious": "Curious",
    "adventurous": "Adventurous",
    "cuddly": "Cuddly",
    "sweet": "Sweet",
    "goofy": "Goofy",
    "protective": "Protective",
    "independent": "Independent",
}

MAX_BIO_TAGS = 3


def extract_tags_from_bio(bio: str, existing: list[str]) -> list[str]:
    """Up to 3 tags found in an AI bio that are not already present."""
    text = (bio or "").lower()
    seen = {t.lower() for t in existing}
    found: list[str] = []
    for keyword, tag in _BIO_KEYWORDS.items():
        if tag.lower() in seen:
            continue
        if re.search(rf"\b{keyword}\b", text):
            found.append(tag)
            seen.add(tag.lower())
    return found[:MAX_BIO_TAGS]
