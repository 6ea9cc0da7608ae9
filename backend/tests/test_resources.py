"""
Travel Admin Backend — Descriptor Parsing Tests
=================================================

What:  Tests for field parsing: list decoding, required fields, numbers,
       length limits and the partial-update rules.
How:   Pure functions; no database or object store.
"""

import pytest

from app.exceptions import ValidationError
from app.services.resources import (
    NOTICES,
    PRODUCTS,
    REPRESENTATIVES,
    RESOURCES,
    decode_list,
)


class TestDecodeList:
    """Features arrive as a list, a JSON-encoded string, or free text."""

    def test_list_passes_through_trimmed(self):
        assert decode_list(["  Wifi ", "Breakfast"]) == ["Wifi", "Breakfast"]

    def test_json_array_string_is_decoded(self):
        assert decode_list('["Wifi", "Pool"]') == ["Wifi", "Pool"]

    def test_non_json_string_becomes_single_item(self):
        assert decode_list("Free airport pickup") == ["Free airport pickup"]

    def test_json_scalar_becomes_single_item(self):
        assert decode_list('"Guide"') == ["Guide"]
        assert decode_list("5") == ["5"]

    def test_malformed_json_falls_back_to_raw_string(self):
        assert decode_list('["Wifi"') == ['["Wifi"']

    def test_none_is_empty(self):
        assert decode_list(None) == []
        assert decode_list("null") == []


class TestCreateParsing:

    def test_product_fields_are_typed_and_defaulted(self):
        values = PRODUCTS.parse({
            "title": "  Tour A ",
            "category": "Beach",
            "price": "100",
            "offerPrice": 80,
        })
        assert values == {
            "title": "Tour A",
            "category": "Beach",
            "price": 100.0,
            "offer_price": 80.0,
            "features": [],
        }

    @pytest.mark.parametrize("missing", ["title", "category", "price", "offerPrice"])
    def test_product_missing_required_field(self, missing):
        payload = {"title": "Tour A", "category": "Beach", "price": 100, "offerPrice": 80}
        del payload[missing]
        with pytest.raises(ValidationError) as exc_info:
            PRODUCTS.parse(payload)
        assert exc_info.value.message == "All fields required (title, category, price, offerPrice)"
        assert exc_info.value.field == missing

    def test_blank_string_counts_as_missing(self):
        with pytest.raises(ValidationError):
            PRODUCTS.parse({"title": "   ", "category": "Beach", "price": 1, "offerPrice": 1})

    @pytest.mark.parametrize("bad", ["abc", "nan", "inf", True])
    def test_non_numeric_price_rejected(self, bad):
        with pytest.raises(ValidationError) as exc_info:
            PRODUCTS.parse({"title": "T", "category": "C", "price": bad, "offerPrice": 1})
        assert exc_info.value.field == "price"

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError, match="zero or greater"):
            PRODUCTS.parse({"title": "T", "category": "C", "price": 1, "offerPrice": "-5"})

    def test_zero_price_allowed(self):
        values = PRODUCTS.parse({"title": "T", "category": "C", "price": 0, "offerPrice": 0})
        assert values["price"] == 0.0

    def test_notice_requires_title(self):
        with pytest.raises(ValidationError, match="Title is required"):
            NOTICES.parse({})

    def test_notice_title_length_limit(self):
        assert NOTICES.parse({"title": "x" * 500})["title"] == "x" * 500
        with pytest.raises(ValidationError):
            NOTICES.parse({"title": "x" * 501})

    def test_representative_socials_default_to_empty(self):
        values = REPRESENTATIVES.parse({"name": "Asha"})
        assert values == {"name": "Asha", "facebook": "", "twitter": "", "instagram": ""}

    def test_representative_name_length_limit(self):
        with pytest.raises(ValidationError):
            REPRESENTATIVES.parse({"name": "n" * 101})


class TestPartialParsing:

    def test_omitted_and_blank_fields_are_dropped(self):
        values = PRODUCTS.parse({"price": "120", "title": "", "category": None}, partial=True)
        assert values == {"price": 120.0}

    def test_partial_still_validates_present_values(self):
        with pytest.raises(ValidationError):
            PRODUCTS.parse({"price": "cheap"}, partial=True)

    def test_notice_update_requires_title(self):
        with pytest.raises(ValidationError, match="Title is required"):
            NOTICES.parse({}, partial=True)

    def test_representative_update_without_name_is_allowed(self):
        assert REPRESENTATIVES.parse({"twitter": "@asha"}, partial=True) == {"twitter": "@asha"}


class TestDescriptors:

    def test_only_products_and_representatives_carry_images(self):
        with_images = {d.plural for d in RESOURCES if d.supports_asset}
        assert with_images == {"products", "representatives"}

    def test_only_representatives_expose_upload_route(self):
        assert [d.plural for d in RESOURCES if d.upload_route] == ["representatives"]
