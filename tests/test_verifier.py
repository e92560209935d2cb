"""
Verification and tamper-detection tests.

Each test completes real inspections, then alters the store the way an
unauthorized writer would, and checks which verdicts flip.
"""

import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from fireinspect import (
    ChecklistResponse,
    InMemoryInspectionRepository,
    InspectionLifecycle,
    InspectionVerifier,
    InspectorSigner,
    InvalidState,
    NotFound,
)
from fireinspect.verifier import MESSAGE_VERIFIED

KEY = b"verifier-test-signing-key-0000001"


def fixed_clock():
    state = {"now": datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)}

    def clock():
        state["now"] += timedelta(seconds=1)
        return state["now"]
    return clock


class VerifierTestCase(unittest.TestCase):

    def setUp(self):
        self.repository = InMemoryInspectionRepository()
        self.signer = InspectorSigner(KEY)
        self.lifecycle = InspectionLifecycle(self.repository, self.signer, clock=fixed_clock())
        self.verifier = InspectionVerifier(self.repository, self.signer, chain=self.lifecycle.chain)

    def _complete(self, asset_id="EXT-0042", **create_kwargs):
        iid = self.lifecycle.create(asset_id, "inspector-7", "Monthly", **create_kwargs).inspection_id
        self.lifecycle.record_checklist_responses(iid, [
            ChecklistResponse("is_accessible", "Pass"),
            ChecklistResponse("seal_intact", "Pass"),
            ChecklistResponse("gauge_in_green_zone", "Pass", value=Decimal("150")),
        ])
        self.lifecycle.complete(iid, "Pass", notes="Routine check")
        return iid

    def _stored(self, iid):
        """Direct handle on the stored record, bypassing the lifecycle."""
        return self.repository._records[iid]


class TestVerifier(VerifierTestCase):

    def test_untouched_inspection_verifies(self):
        iid = self._complete(gps_latitude=Decimal("40.7128"), gps_longitude=Decimal("-74.006"))
        result = self.verifier.verify(iid)
        self.assertTrue(result.is_valid())
        self.assertTrue(result.content_valid)
        self.assertTrue(result.signature_valid)
        self.assertTrue(result.chain_valid)
        self.assertEqual(result.message, MESSAGE_VERIFIED)
        self.assertEqual(result.computed_hash, result.stored_hash)
        self.assertIsNone(result.expected_previous_hash)
        self.assertTrue(result.location_verified)
        self.assertIsNotNone(result.verified_at)

    def test_content_mutation_detected(self):
        iid = self._complete()
        self._stored(iid).notes = "Routine check (edited)"
        result = self.verifier.verify(iid)
        self.assertFalse(result.content_valid)
        self.assertTrue(result.signature_valid)
        self.assertTrue(result.chain_valid)
        self.assertFalse(result.is_valid())
        self.assertIn("content hash mismatch", result.message)
        self.assertEqual(result.failed_checks(), ["content"])

    def test_checklist_mutation_detected(self):
        iid = self._complete()
        self._stored(iid).responses["seal_intact"].response = "Fail"
        self.assertFalse(self.verifier.verify(iid).content_valid)

    def test_photo_reorder_detected(self):
        iid = self.lifecycle.create("EXT-0042", "inspector-7", "Monthly").inspection_id
        self.lifecycle.add_photo(iid, "photo-1")
        self.lifecycle.add_photo(iid, "photo-2")
        self.lifecycle.complete(iid, "Pass")
        self._stored(iid).photo_refs.reverse()
        self.assertFalse(self.verifier.verify(iid).content_valid)

    def test_hash_mutation_detected(self):
        iid = self._complete()
        self._stored(iid).content_hash = "f" * 64
        result = self.verifier.verify(iid)
        self.assertFalse(result.content_valid)
        self.assertFalse(result.signature_valid)
        self.assertIn("inspector signature invalid", result.message)

    def test_signature_mutation_detected(self):
        iid = self._complete()
        self._stored(iid).signed_at += timedelta(seconds=1)
        result = self.verifier.verify(iid)
        self.assertTrue(result.content_valid)
        self.assertFalse(result.signature_valid)

    def test_wrong_key_detected(self):
        iid = self._complete()
        other = InspectionVerifier(self.repository, InspectorSigner(b"a-completely-different-key-00001"))
        result = other.verify(iid)
        self.assertTrue(result.content_valid)
        self.assertFalse(result.signature_valid)

    def test_predecessor_deletion_detected(self):
        first = self._complete()
        second = self._complete()
        self.assertTrue(self.verifier.verify(second).is_valid())

        del self.repository._records[first]

        result = self.verifier.verify(second)
        self.assertFalse(result.chain_valid)
        self.assertTrue(result.content_valid)
        self.assertTrue(result.signature_valid)
        self.assertIsNone(result.expected_previous_hash)
        self.assertIsNotNone(result.previous_hash)
        self.assertIn("hash chain broken", result.message)

    def test_validate_link(self):
        first = self._complete()
        second = self._complete()
        chain = self.lifecycle.chain
        self.assertTrue(chain.validate_link(self._stored(first)))
        self.assertTrue(chain.validate_link(self._stored(second)))
        del self.repository._records[first]
        self.assertFalse(chain.validate_link(self._stored(second)))

    def test_middle_deletion_detected(self):
        first = self._complete()
        middle = self._complete()
        last = self._complete()
        del self.repository._records[middle]
        result = self.verifier.verify(last)
        self.assertFalse(result.chain_valid)
        self.assertEqual(result.expected_previous_hash, self._stored(first).content_hash)

    def test_unserializable_record_reported_not_raised(self):
        iid = self._complete()
        self._stored(iid).inspection_type = "   "
        result = self.verifier.verify(iid)
        self.assertFalse(result.content_valid)
        self.assertIsNone(result.computed_hash)

    def test_in_progress_rejected(self):
        iid = self.lifecycle.create("EXT-0042", "inspector-7", "Monthly").inspection_id
        with self.assertRaises(InvalidState):
            self.verifier.verify(iid)

    def test_deleted_rejected(self):
        iid = self.lifecycle.create("EXT-0042", "inspector-7", "Monthly").inspection_id
        self.lifecycle.delete(iid)
        with self.assertRaises(InvalidState):
            self.verifier.verify(iid)

    def test_unknown_rejected(self):
        with self.assertRaises(NotFound):
            self.verifier.verify("missing")

    def test_to_dict(self):
        data = self.verifier.verify(self._complete()).to_dict()
        self.assertTrue(data["is_valid"])
        self.assertTrue(data["verified_at"].endswith("Z"))
        self.assertFalse(data["location_verified"])


class TestAssetChainReport(VerifierTestCase):

    def test_whole_chain(self):
        ids = [self._complete() for _ in range(3)]
        self._complete("EXT-0099")
        self.lifecycle.create("EXT-0042", "inspector-7", "Monthly")
        report = self.verifier.verify_asset("EXT-0042")
        self.assertTrue(report.is_valid())
        self.assertEqual([r.inspection_id for r in report.results], ids)
        self.assertEqual(report.to_dict()["inspections_checked"], 3)

    def test_tampered_member_reported(self):
        ids = [self._complete() for _ in range(3)]
        self._stored(ids[1]).notes = "rewritten"
        report = self.verifier.verify_asset("EXT-0042")
        self.assertFalse(report.is_valid())
        self.assertEqual([r.inspection_id for r in report.invalid()], [ids[1]])

    def test_empty_asset(self):
        report = self.verifier.verify_asset("EXT-NONE")
        self.assertTrue(report.is_valid())
        self.assertEqual(report.results, [])


if __name__ == "__main__":
    unittest.main(verbosity=2)
