# Overview: Pytest coverage for payload coercion and the typed request structs.

from decimal import Decimal

import pytest

from brewcore.errors import ValidationError
from brewcore.validation import (
    AdjustRequest,
    CreateLotRequest,
    DeductRequest,
    NotesRequest,
    StartPackagingRequest,
    coerce_int,
    coerce_quantity,
)


class TestCoerceQuantity:
    @pytest.mark.parametrize("raw, expected", [
        (5, Decimal("5")),
        ("12.5", Decimal("12.5")),
        (" 0.125 ", Decimal("0.125")),
        (2.5, Decimal("2.5")),
        (Decimal("-3"), Decimal("-3")),
    ])
    def test_accepts(self, raw, expected):
        assert coerce_quantity(raw) == expected

    @pytest.mark.parametrize("raw", [None, True, "", "abc", "1e3", "NaN", "Infinity", "1,000", "0.0001", 0, [], 2e9])
    def test_rejects(self, raw):
        with pytest.raises(ValidationError):
            coerce_quantity(raw)

    def test_positive_flag(self):
        with pytest.raises(ValidationError):
            coerce_quantity(-1, positive=True)


class TestCoerceInt:
    def test_numeric_strings(self):
        assert coerce_int("42", "item_id") == 42
        assert coerce_int(None, "item_id", required=False) is None

    @pytest.mark.parametrize("raw", [True, "4.2", 4.0, "x"])
    def test_rejects(self, raw):
        with pytest.raises(ValidationError):
            coerce_int(raw, "item_id")


class TestRequests:
    def test_deduct_maps_type_to_hint(self):
        req = DeductRequest.from_payload({"category": "packaging", "type": "Bottle 500", "quantity": 24})
        assert req.category == "PACKAGING"
        assert req.type_hint == "Bottle 500"
        assert req.item_id is None

    def test_deduct_rejects_unknown_category(self):
        with pytest.raises(ValidationError):
            DeductRequest.from_payload({"category": "SNACKS", "quantity": 1})

    def test_non_object_payload(self):
        with pytest.raises(ValidationError):
            DeductRequest.from_payload(["quantity", 1])

    def test_adjust_requires_known_type(self):
        with pytest.raises(ValidationError):
            AdjustRequest.from_payload({"delta": 5, "type": "CONSUMPTION"})
        assert AdjustRequest.from_payload({"delta": 5, "type": "return"}).type == "RETURN"

    def test_packaging_fields_optional(self):
        req = StartPackagingRequest.from_payload(None)
        assert req.package_type is None
        assert req.quantity is None

    def test_packaging_rejects_unknown_package(self):
        with pytest.raises(ValidationError):
            StartPackagingRequest.from_payload({"package_type": "FIRKIN"})

    def test_notes_accepts_reason(self):
        assert NotesRequest.from_payload({"reason": "Infected"}).notes == "Infected"

    def test_lot_members(self):
        req = CreateLotRequest.from_payload({
            "lot_code": "L-9",
            "members": [{"batch_id": 1, "volume_contribution": "800"}],
        })
        assert req.phase == "FERMENTATION"
        assert req.members[0].volume_contribution == Decimal("800")

        with pytest.raises(ValidationError):
            CreateLotRequest.from_payload({"lot_code": "L-9", "members": [{"batch_id": 1}]})
