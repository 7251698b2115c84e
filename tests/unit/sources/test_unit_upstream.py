# tests/unit/sources/test_unit_upstream.py
"""Unit tests for sources/upstream.py."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from pawmatch.enrichment.heuristics import analyze
from pawmatch.sources.upstream import (
    OpenDataAnimal,
    PetfinderAnimal,
    ShelterluvAnimal,
    open_data_to_item,
    parse_upstream_record,
    petfinder_to_item,
    shelterluv_to_item,
)

SHELTERLUV_RAW = {
    "kind": "shelterluv",
    "ID": "SL-101",
    "Name": "*BRUNO",
    "Breed": "Mix / Terrier",
    "Sex": "Male",
    "Age": 38,
    "Description": "<p>Bruno loves to <b>run</b> and hike all day</p>",
    "Photos": ["https://img.example/bruno1.jpg", "https://img.example/bruno2.jpg"],
    "Attributes": [
        {"AttributeName": "Good with Dogs"},
        {"AttributeName": "Housetrained"},
        {"AttributeName": "Good with Dogs"},
    ],
    "Status": "Available For Adoption",
}

PETFINDER_RAW = {
    "kind": "petfinder",
    "id": 555,
    "name": "Princess",
    "species": "Cat",
    "breeds": {"primary": "Domestic Short Hair", "secondary": "Siamese", "mixed": True},
    "age": "Young",
    "size": "Small",
    "status": "adoptable",
    "description": "Loves napping on the couch.",
    "photos": [{"small": "https://pf/s.jpg", "large": "https://pf/l.jpg"}, {"small": "https://pf/s2.jpg"}],
    "tags": ["Gentle", "Quiet", "Gentle"],
    "environment": {"children": True, "dogs": False, "cats": None},
    "colors": {"primary": "Black", "secondary": "White", "tertiary": None},
}

OPEN_DATA_RAW = {
    "kind": "open_data",
    "animalid": "A123",
    "petname": "MAX",
    "animaltype": "DOG",
    "breed": "LABRADOR",
    "petage": "3 YEARS",
    "petsize": "LARGE",
    "sex": "N",
    "color": "YELLOW",
    "url": {"url": "http://images.county.gov/A123.jpg"},
}


class TestShelterluv:
    def test_mapping(self):
        item = shelterluv_to_item(ShelterluvAnimal.model_validate(SHELTERLUV_RAW))
        assert item.id == "SL-101"
        assert item.name == "Bruno"
        assert item.age == "3 years"
        assert item.description == "Bruno loves to run and hike all day"
        assert not item.is_synthetic_description
        assert item.image_url == "https://img.example/bruno1.jpg"
        assert len(item.images) == 2
        assert item.tags == ["Good with Dogs", "Housetrained"]
        assert item.status == "Available"
        assert item.source == "shelterluv"

    def test_compatibility_from_attributes_only(self):
        item = shelterluv_to_item(ShelterluvAnimal.model_validate(SHELTERLUV_RAW))
        assert item.compatibility.dogs is True
        assert item.compatibility.kids is None
        assert item.compatibility.cats is None

    def test_no_attributes_means_unknown(self):
        raw = {**SHELTERLUV_RAW, "Attributes": []}
        assert shelterluv_to_item(ShelterluvAnimal.model_validate(raw)).compatibility is None

    def test_young_animal_in_months(self):
        raw = {**SHELTERLUV_RAW, "Age": 7}
        assert shelterluv_to_item(ShelterluvAnimal.model_validate(raw)).age == "7 months"

    def test_pending_status(self):
        raw = {**SHELTERLUV_RAW, "Status": "Adoption Pending"}
        assert shelterluv_to_item(ShelterluvAnimal.model_validate(raw)).status == "Pending"


class TestPetfinder:
    def test_mapping(self):
        item = petfinder_to_item(PetfinderAnimal.model_validate(PETFINDER_RAW))
        assert item.id == "555"
        assert item.species == "Cat"
        assert item.breed == "Domestic Short Hair / Siamese"
        assert item.size == "Small"
        assert item.color == "Black / White"
        assert item.images == ["https://pf/l.jpg", "https://pf/s2.jpg"]
        assert item.tags == ["Gentle", "Quiet"]
        assert item.compatibility.kids is True
        assert item.compatibility.dogs is False
        assert item.compatibility.cats is None
        assert item.status == "Available"
        assert not item.is_synthetic_description

    def test_placeholder_description_is_synthetic(self):
        raw = {**PETFINDER_RAW, "description": "Hi!"}
        item = petfinder_to_item(PetfinderAnimal.model_validate(raw))
        assert item.is_synthetic_description
        assert item.description == "Princess is looking for a forever home!"

    def test_missing_breed(self):
        raw = {**PETFINDER_RAW, "breeds": {}}
        assert petfinder_to_item(PetfinderAnimal.model_validate(raw)).breed == "Mixed"

    def test_unknown_species(self):
        raw = {**PETFINDER_RAW, "species": "Horse"}
        assert petfinder_to_item(PetfinderAnimal.model_validate(raw)).species == "Other"

    def test_scales_fins_other(self):
        raw = {**PETFINDER_RAW, "species": "Scales, Fins & Other"}
        assert petfinder_to_item(PetfinderAnimal.model_validate(raw)).species == "Reptile"

    @pytest.mark.parametrize("label", ["Baby", "Young", "Adult", "Senior"])
    def test_age_label_keeps_its_category(self, label):
        raw = {**PETFINDER_RAW, "age": label}
        item = petfinder_to_item(PetfinderAnimal.model_validate(raw))
        assert analyze(item).age_category == label


class TestOpenData:
    def test_mapping(self):
        item = open_data_to_item(OpenDataAnimal.model_validate(OPEN_DATA_RAW))
        assert item.id == "A123"
        assert item.name == "Max"
        assert item.species == "Dog"
        assert item.size == "Large"
        assert item.is_synthetic_description
        assert item.description.startswith("Meet Max, a 3 years labrador.")
        assert item.image_url == "https://images.county.gov/A123.jpg"
        assert item.compatibility is None

    def test_no_image(self):
        raw = {**OPEN_DATA_RAW, "url": None}
        item = open_data_to_item(OpenDataAnimal.model_validate(raw))
        assert item.images == []


class TestParseUpstreamRecord:
    @pytest.mark.parametrize("raw,source", [
        (SHELTERLUV_RAW, "shelterluv"),
        (PETFINDER_RAW, "petfinder"),
        (OPEN_DATA_RAW, "open_data"),
    ])
    def test_dispatch(self, raw, source):
        assert parse_upstream_record(raw).source == source

    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            parse_upstream_record({"kind": "craigslist", "id": "1"})

    def test_missing_required_field(self):
        with pytest.raises(ValidationError):
            parse_upstream_record({"kind": "open_data", "petname": "Max"})
