"""
Canonical encoding and content hashing tests.

Covers:
- Determinism regardless of construction order
- Fixed decimal precision and rounding
- UTC timestamp normalization
- Text normalization
- Sensitivity of the hash to every kind of content change
- SerializationError for unencodable content
"""

import json
import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from fireinspect import (
    CANONICAL_VERSION,
    ChecklistOutcome,
    InspectionContent,
    SerializationError,
    canonicalize,
    canonicalize_str,
    compute_hash,
    hashes_match,
    verify_hash,
)
from fireinspect.canonicalization import canonical_fields


def make_content(**overrides) -> InspectionContent:
    fields = dict(
        asset_id="EXT-0042",
        inspector_id="inspector-7",
        inspection_date=datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc),
        inspection_type="Monthly",
        gps_latitude=Decimal("40.7128"),
        gps_longitude=Decimal("-74.006"),
        gps_accuracy_meters=Decimal("4.5"),
        is_accessible=True,
        seal_intact=True,
        pin_in_place=True,
        gauge_in_green_zone=True,
        gauge_pressure_psi=Decimal("150"),
        notes="Wall mount, lobby",
        photo_refs=("photo-1", "photo-2"),
        checklist=(
            ChecklistOutcome("seal_intact", "Pass"),
            ChecklistOutcome("gauge_in_green_zone", "Pass", value=Decimal("150")),
        ),
    )
    fields.update(overrides)
    return InspectionContent(**fields)


class TestCanonicalForm(unittest.TestCase):
    """Shape of the canonical byte sequence."""

    def test_version_tag_leads(self):
        encoded = json.loads(canonicalize_str(make_content()))
        self.assertEqual(list(encoded)[0], "v")
        self.assertEqual(encoded["v"], CANONICAL_VERSION)

    def test_fixed_field_order(self):
        text = canonicalize_str(make_content())
        self.assertTrue(text.startswith(
            '{"v":"fireinspect.content.v1","asset_id":"EXT-0042","inspector_id":"inspector-7",'
            '"inspection_date":"2024-03-01T09:30:00.000000Z","inspection_type":"Monthly",'
            '"gps_latitude":"40.7128000","gps_longitude":"-74.0060000","gps_accuracy_meters":"4.50"'
        ))

    def test_no_whitespace_utf8(self):
        data = canonicalize(make_content(notes="Café – étage 2"))
        self.assertIsInstance(data, bytes)
        self.assertNotIn(b": ", data)
        self.assertNotIn(b", ", data)
        self.assertIn("Café – étage 2".encode("utf-8"), data)

    def test_identifiers_and_integrity_fields_absent(self):
        encoded = canonical_fields(make_content())
        for name in ("inspection_id", "content_hash", "previous_hash", "inspector_signature", "status", "created_at"):
            self.assertNotIn(name, encoded)

    def test_unassessed_checks_encode_as_null(self):
        encoded = canonical_fields(make_content())
        self.assertIsNone(encoded["nozzle_clear"])
        self.assertIs(encoded["seal_intact"], True)

    def test_checklist_as_sorted_arrays(self):
        encoded = canonical_fields(make_content())
        self.assertEqual(encoded["checklist"], [
            ["gauge_in_green_zone", "Pass", None, "150.00", None],
            ["seal_intact", "Pass", None, None, None],
        ])


class TestDeterminism(unittest.TestCase):
    """Identical field values produce identical bytes."""

    def test_keyword_order_irrelevant(self):
        a = InspectionContent(
            asset_id="A", inspector_id="I", inspection_type="Annual",
            inspection_date=datetime(2024, 1, 1, tzinfo=timezone.utc), notes="n",
        )
        b = InspectionContent(
            notes="n", inspection_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
            inspection_type="Annual", inspector_id="I", asset_id="A",
        )
        self.assertEqual(canonicalize(a), canonicalize(b))

    def test_checklist_order_irrelevant(self):
        first = make_content(checklist=(
            ChecklistOutcome("a_item", "Pass"), ChecklistOutcome("b_item", "Fail"),
        ))
        second = make_content(checklist=(
            ChecklistOutcome("b_item", "Fail"), ChecklistOutcome("a_item", "Pass"),
        ))
        self.assertEqual(compute_hash(first), compute_hash(second))

    def test_equivalent_decimals(self):
        self.assertEqual(
            compute_hash(make_content(gps_latitude=Decimal("40.7128"))),
            compute_hash(make_content(gps_latitude=Decimal("40.71280000"))),
        )
        self.assertEqual(
            compute_hash(make_content(gauge_pressure_psi=150)),
            compute_hash(make_content(gauge_pressure_psi=Decimal("150.00"))),
        )

    def test_timezone_normalized_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        self.assertEqual(
            compute_hash(make_content(inspection_date=datetime(2024, 3, 1, 11, 30, tzinfo=plus_two))),
            compute_hash(make_content()),
        )

    def test_naive_timestamp_taken_as_utc(self):
        self.assertEqual(
            compute_hash(make_content(inspection_date=datetime(2024, 3, 1, 9, 30))),
            compute_hash(make_content()),
        )

    def test_unicode_normalization(self):
        composed = make_content(notes="Caf\u00e9")
        decomposed = make_content(notes="Cafe\u0301")
        self.assertEqual(canonicalize(composed), canonicalize(decomposed))

    def test_repeatable(self):
        content = make_content()
        self.assertEqual(compute_hash(content), compute_hash(content))


class TestDecimalEncoding(unittest.TestCase):

    def _pressure(self, value):
        return canonical_fields(make_content(gauge_pressure_psi=value))["gauge_pressure_psi"]

    def test_half_even_rounding(self):
        self.assertEqual(self._pressure(Decimal("1.005")), "1.00")
        self.assertEqual(self._pressure(Decimal("1.015")), "1.02")

    def test_float_uses_shortest_repr(self):
        self.assertEqual(self._pressure(0.1 + 0.2), "0.30")
        self.assertEqual(self._pressure(149.5), "149.50")

    def test_no_negative_zero(self):
        self.assertEqual(self._pressure(Decimal("-0.001")), "0.00")

    def test_gps_seven_places(self):
        encoded = canonical_fields(make_content(gps_latitude=Decimal("12.123456789")))
        self.assertEqual(encoded["gps_latitude"], "12.1234568")

    def test_non_finite_rejected(self):
        for bad in (Decimal("NaN"), Decimal("Infinity"), float("nan"), float("inf")):
            with self.assertRaises(SerializationError):
                canonicalize(make_content(gauge_pressure_psi=bad))

    def test_bool_is_not_a_number(self):
        with self.assertRaises(SerializationError):
            canonicalize(make_content(weight_pounds=True))


class TestSerializationErrors(unittest.TestCase):

    def test_required_fields(self):
        for name in ("asset_id", "inspector_id", "inspection_type"):
            with self.assertRaises(SerializationError) as ctx:
                canonicalize(make_content(**{name: None}))
            self.assertEqual(ctx.exception.field, name)

        with self.assertRaises(SerializationError):
            canonicalize(make_content(inspection_type="   "))

    def test_missing_timestamp(self):
        with self.assertRaises(SerializationError) as ctx:
            canonicalize(make_content(inspection_date=None))
        self.assertEqual(ctx.exception.field, "inspection_date")

    def test_wrong_types(self):
        with self.assertRaises(SerializationError):
            canonicalize(make_content(notes=42))
        with self.assertRaises(SerializationError):
            canonicalize(make_content(inspection_date="2024-03-01"))
        with self.assertRaises(SerializationError):
            canonicalize(make_content(seal_intact="yes"))
        with self.assertRaises(SerializationError):
            canonicalize(make_content(photo_refs="photo-1"))

    def test_bad_checklist(self):
        with self.assertRaises(SerializationError):
            canonicalize(make_content(checklist=(
                ChecklistOutcome("seal_intact", "Pass"), ChecklistOutcome("seal_intact", "Fail"),
            )))
        with self.assertRaises(SerializationError):
            canonicalize(make_content(checklist=(ChecklistOutcome("seal_intact", "Maybe"),)))


class TestHashing(unittest.TestCase):

    def test_hash_format(self):
        h = compute_hash(make_content())
        self.assertEqual(len(h), 64)
        self.assertEqual(h, h.lower())
        int(h, 16)

    def test_verify_hash(self):
        content = make_content()
        h = compute_hash(content)
        self.assertTrue(verify_hash(content, h))
        self.assertTrue(verify_hash(content, h.upper()))
        self.assertFalse(verify_hash(content, "0" * 64))
        self.assertFalse(verify_hash(content, None))
        self.assertFalse(verify_hash(content, ""))

    def test_hashes_match(self):
        self.assertTrue(hashes_match("abc", "ABC"))
        self.assertFalse(hashes_match("abc", None))
        self.assertFalse(hashes_match(None, "abc"))

    def test_sensitivity(self):
        base = compute_hash(make_content())
        changes = [
            dict(asset_id="EXT-0043"),
            dict(inspector_id="inspector-8"),
            dict(inspection_date=datetime(2024, 3, 1, 9, 30, 0, 1, tzinfo=timezone.utc)),
            dict(inspection_type="Annual"),
            dict(gps_latitude=Decimal("40.7128001")),
            dict(gps_accuracy_meters=None),
            dict(seal_intact=False),
            dict(nozzle_clear=True),
            dict(gauge_pressure_psi=Decimal("150.01")),
            dict(notes="Wall mount, lobby."),
            dict(requires_service=True),
            dict(declared_result="Pass"),
            dict(photo_refs=("photo-2", "photo-1")),
            dict(photo_refs=("photo-1",)),
            dict(checklist=(ChecklistOutcome("seal_intact", "Fail"),)),
        ]
        seen = {base}
        for change in changes:
            h = compute_hash(make_content(**change))
            self.assertNotIn(h, seen, f"hash did not change for {change}")
            seen.add(h)


class TestFromDict(unittest.TestCase):

    def test_json_fixture_round(self):
        content = InspectionContent.from_dict({
            "asset_id": "EXT-0042",
            "inspector_id": "inspector-7",
            "inspection_date": "2024-03-01T09:30:00Z",
            "inspection_type": "Monthly",
            "gps_latitude": "40.7128",
            "gps_longitude": -74.006,
            "gps_accuracy_meters": 4.5,
            "is_accessible": True,
            "seal_intact": True,
            "pin_in_place": True,
            "gauge_in_green_zone": True,
            "gauge_pressure_psi": 150,
            "notes": "Wall mount, lobby",
            "photo_refs": ["photo-1", "photo-2"],
            "checklist": [
                {"item_key": "seal_intact", "response": "Pass"},
                {"item_key": "gauge_in_green_zone", "response": "Pass", "value": 150},
            ],
        })
        self.assertEqual(compute_hash(content), compute_hash(make_content()))


if __name__ == "__main__":
    unittest.main(verbosity=2)
