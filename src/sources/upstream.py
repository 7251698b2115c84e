# src/sources/upstream.py
"""Upstream record shapes and their adapters to ``Item``.

Each shelter feed is modelled as a tagged variant (``kind``). Raw JSON is
validated against the variant at the boundary and mapped to the canonical
``Item``; nothing loosely typed gets past this module. Adapters only map
fields: they do no network I/O and infer no personality. Traits are left
to the heuristic analyzer, which knows whether a description is authentic.
"""

from __future__ import annotations

import logging
import re
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from pawmatch.core.models import Compatibility, Item, Species
from pawmatch.enrichment.heuristics import normalize_size

logger = logging.getLogger(__name__)

_HTML_TAG = re.compile(r"<[^>]*>?")

# Shorter shelter notes are treated as placeholders
_MIN_REAL_DESCRIPTION = 10


def _title_name(raw: str) -> str:
    name = raw.replace("*", "").strip()
    return name[:1].upper() + name[1:].lower() if name else ""


# === SHELTERLUV ===


class ShelterluvAttribute(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    attribute_name: str = Field(alias="AttributeName")


class ShelterluvAnimal(BaseModel):
    """Shelterluv API animal. Age is in months."""

    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["shelterluv"] = "shelterluv"
    id: str = Field(alias="ID")
    name: str = Field(default="", alias="Name")
    breed: str = Field(default="", alias="Breed")
    sex: str = Field(default="", alias="Sex")
    age_months: int = Field(default=0, alias="Age")
    description: str = Field(default="", alias="Description")
    photos: list[str] = Field(default_factory=list, alias="Photos")
    attributes: list[ShelterluvAttribute] = Field(default_factory=list, alias="Attributes")
    status: str = Field(default="", alias="Status")


def _shelterluv_age(months: int) -> str:
    years, rest = divmod(max(months, 0), 12)
    return f"{years} years" if years > 0 else f"{rest} months"


def _shelterluv_compatibility(attributes: list[str]) -> Compatibility | None:
    lowered = [a.lower() for a in attributes]

    def flag(*needles: str) -> bool | None:
        return True if any("good with" in a and any(n in a for n in needles) for a in lowered) else None

    compat = Compatibility(kids=flag("kid", "child"), dogs=flag("dog"), cats=flag("cat"))
    return compat if compat != Compatibility() else None


def shelterluv_to_item(animal: ShelterluvAnimal, source: str = "shelterluv") -> Item:
    attributes = [a.attribute_name for a in animal.attributes if a.attribute_name]
    description = _HTML_TAG.sub("", animal.description or "").strip()
    return Item(
        id=animal.id,
        name=_title_name(animal.name),
        breed=animal.breed,
        age=_shelterluv_age(animal.age_months),
        description=description,
        compatibility=_shelterluv_compatibility(attributes),
        image_url=animal.photos[0] if animal.photos else None,
        images=list(animal.photos),
        tags=list(dict.fromkeys(attributes)),
        status="Available" if animal.status == "Available For Adoption" else "Pending",
        source=source,
    )


# === PETFINDER ===


class PetfinderBreeds(BaseModel):
    primary: str | None = None
    secondary: str | None = None
    mixed: bool = False


class PetfinderPhoto(BaseModel):
    small: str | None = None
    medium: str | None = None
    large: str | None = None
    full: str | None = None

    def best(self) -> str | None:
        return self.large or self.medium or self.full or self.small


class PetfinderEnvironment(BaseModel):
    children: bool | None = None
    dogs: bool | None = None
    cats: bool | None = None


class PetfinderColors(BaseModel):
    primary: str | None = None
    secondary: str | None = None
    tertiary: str | None = None


class PetfinderAnimal(BaseModel):
    """Petfinder v2 animal."""

    kind: Literal["petfinder"] = "petfinder"
    id: int | str
    name: str = ""
    species: str = ""
    breeds: PetfinderBreeds = Field(default_factory=PetfinderBreeds)
    age: str = ""
    gender: str = ""
    size: str | None = None
    status: str = ""
    description: str | None = None
    photos: list[PetfinderPhoto] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    environment: PetfinderEnvironment | None = None
    colors: PetfinderColors | None = None


_PETFINDER_SPECIES: dict[str, Species] = {
    "dog": "Dog",
    "cat": "Cat",
    "bird": "Bird",
    "rabbit": "Rabbit",
    "small & furry": "Small & Furry",
    "scales, fins & other": "Reptile",
}


def petfinder_to_item(animal: PetfinderAnimal, source: str = "petfinder") -> Item:
    breed = " / ".join(b for b in (animal.breeds.primary, animal.breeds.secondary) if b) or "Mixed"
    description = (animal.description or "").strip()
    is_real = len(description) > _MIN_REAL_DESCRIPTION
    images = [url for url in (p.best() for p in animal.photos) if url]

    color = None
    if animal.colors is not None:
        parts = [c for c in (animal.colors.primary, animal.colors.secondary, animal.colors.tertiary) if c]
        color = " / ".join(parts) or None

    compatibility = None
    if animal.environment is not None:
        compatibility = Compatibility(
            kids=animal.environment.children,
            dogs=animal.environment.dogs,
            cats=animal.environment.cats,
        )

    return Item(
        id=str(animal.id),
        name=animal.name,
        species=_PETFINDER_SPECIES.get(animal.species.strip().lower(), "Other") if animal.species else None,
        breed=breed,
        age=animal.age,
        size=normalize_size(animal.size),
        color=color,
        description=description if is_real else f"{animal.name or 'This pet'} is looking for a forever home!",
        is_synthetic_description=not is_real,
        compatibility=compatibility,
        image_url=images[0] if images else None,
        images=images,
        tags=list(dict.fromkeys(animal.tags)),
        status="Available" if animal.status == "adoptable" else "Pending",
        source=source,
    )


# === COUNTY OPEN DATA ===


class OpenDataLink(BaseModel):
    url: str


class OpenDataAnimal(BaseModel):
    """County open-data shelter intake record. Carries no staff notes."""

    kind: Literal["open_data"] = "open_data"
    animalid: str
    petname: str = ""
    animaltype: str = ""
    breed: str = ""
    petage: str = ""
    petsize: str = ""
    sex: str = ""
    color: str = ""
    url: OpenDataLink | None = None


_OPEN_DATA_SPECIES: dict[str, Species] = {"DOG": "Dog", "CAT": "Cat"}


def open_data_to_item(animal: OpenDataAnimal, source: str = "open_data") -> Item:
    """Map a record whose description has to be synthesized from facts."""
    name = _title_name(animal.petname)
    description = (
        f"Meet {name}, a {animal.petage.lower()} {animal.breed.lower()}. "
        f"This {animal.petsize.lower()} {animal.animaltype.lower()} has a "
        f"{animal.color.lower()} coat. Currently waiting for a forever home at the adoption center."
    )
    image = None
    if animal.url is not None:
        image = animal.url.url.replace("http://", "https://", 1)

    return Item(
        id=animal.animalid,
        name=name,
        species=_OPEN_DATA_SPECIES.get(animal.animaltype.strip().upper()),
        breed=animal.breed,
        age=animal.petage,
        size=normalize_size(animal.petsize),
        color=animal.color or None,
        description=description,
        is_synthetic_description=True,
        compatibility=None,
        image_url=image,
        images=[image] if image else [],
        status="Available",
        source=source,
    )


# === DISPATCH ===

UpstreamRecord = Annotated[
    Union[ShelterluvAnimal, PetfinderAnimal, OpenDataAnimal],
    Field(discriminator="kind"),
]

_RECORD_ADAPTER: TypeAdapter[Any] = TypeAdapter(UpstreamRecord)


def to_item(record: ShelterluvAnimal | PetfinderAnimal | OpenDataAnimal) -> Item:
    if isinstance(record, ShelterluvAnimal):
        return shelterluv_to_item(record)
    if isinstance(record, PetfinderAnimal):
        return petfinder_to_item(record)
    return open_data_to_item(record)


def parse_upstream_record(data: dict[str, Any]) -> Item:
    """Validate a raw record tagged with ``kind`` and map it to an ``Item``.

    Raises:
        pydantic.ValidationError: If the record matches no variant.
    """
    return to_item(_RECORD_ADAPTER.validate_python(data))
