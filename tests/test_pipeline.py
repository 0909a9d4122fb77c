from __future__ import annotations

import unittest

from insights_merge.aggregate import IngestState
from insights_merge.errors import ValidationError
from insights_merge.fields import FieldDictionary
from insights_merge.pipeline import analyze, coerce_row, ingest, validate_headers


_FILE_ONE = """\
Publicerings-id,Sid-id,Sidnamn,Titel,Publiceringstid,Visningar,Reaktioner,Kommentarer
101,9001,Klubben,Första,2024-01-03 10:00,100,5,1
102,9001,Klubben,Andra,2024-01-04 11:00,200,6,2
103,9001,Klubben,Tredje,2024-01-05 12:00,300,7,3
"""

_FILE_TWO = """\
Publicerings-id,Sid-id,Sidnamn,Titel,Publiceringstid,Visningar,Reaktioner,Kommentarer
103,9001,Klubben,Tredje,2024-01-05 12:00,300,7,3
104,9001,Klubben,Fjärde,2024-01-08 09:00,400,8,4
"""

_INSTAGRAM = """\
Inläggs-ID;Konto-ID;Användarnamn;Kontonamn;Bildtext;Publicerat;Intryck;Gilla-markeringar;Sparade;Profilbesök
555;77;klubben;Klubben IG;hej;2024-02-01;50;10;3;1
"""


class TestIngest(unittest.TestCase):
    def test_three_plus_two_rows_merge_to_four(self) -> None:
        d = FieldDictionary()
        first = ingest(_FILE_ONE, d, True, filename="one.csv")
        second = ingest(_FILE_TWO, d, True, existing=first.state, filename="two.csv")

        self.assertEqual(len(second.rows), 4)
        self.assertEqual(second.stats.duplicate_count, 1)
        self.assertEqual(list(second.stats.duplicate_ids), ["103"])
        self.assertEqual(second.stats.new_rows, 1)
        self.assertEqual(second.stats.existing_rows, 3)
        self.assertEqual([r["post_id"] for r in second.rows], ["101", "102", "103", "104"])

        accounts = {a.account_id: a for a in second.accounts}
        self.assertEqual(set(accounts), {"9001"})
        self.assertEqual(accounts["9001"].metrics["views"], 1000)
        self.assertEqual(accounts["9001"].metrics["likes"], 26)
        self.assertEqual(accounts["9001"].account_name, "Klubben")

        self.assertEqual(second.stats.date_range.start, "2024-01-03")
        self.assertEqual(second.stats.date_range.end, "2024-01-08")

    def test_facebook_rows_are_mapped_and_coerced(self) -> None:
        result = ingest(_FILE_ONE, FieldDictionary(), True)
        row = result.rows[0]

        self.assertEqual(row["platform"], "facebook")
        self.assertEqual(row["post_id"], "101")
        self.assertEqual(row["account_id"], "9001")
        self.assertEqual(row["description"], "Första")
        self.assertEqual(row["views"], 100)
        self.assertEqual(row["likes"], 5)
        self.assertEqual(result.stats.platform, "facebook")
        self.assertEqual(result.stats.decision.source, "detected")

    def test_file_record(self) -> None:
        result = ingest(_FILE_TWO, FieldDictionary(), True, filename="two.csv")
        record = result.file_record

        self.assertEqual(record.filename, "two.csv")
        self.assertEqual(record.row_count, 2)
        self.assertEqual(record.duplicate_count, 0)
        self.assertEqual(record.account_count, 1)
        self.assertEqual(record.platform, "facebook")
        self.assertEqual(record.date_range.start, "2024-01-05")
        self.assertEqual(record.date_range.end, "2024-01-08")
        self.assertIsNone(record.uploaded_at)

    def test_instagram_detection(self) -> None:
        result = ingest(_INSTAGRAM, FieldDictionary(), True)
        row = result.rows[0]

        self.assertEqual(result.stats.platform, "instagram")
        self.assertEqual(row["platform"], "instagram")
        self.assertEqual(row["post_id"], "555")
        self.assertEqual(row["account_username"], "klubben")
        self.assertEqual(row["saves"], 3)
        self.assertEqual(result.accounts[0].metrics["views"], 50)

    def test_reimport_is_idempotent(self) -> None:
        d = FieldDictionary()
        first = ingest(_FILE_ONE, d, True)
        again = ingest(_FILE_ONE, d, True, existing=first.state)

        self.assertEqual(again.rows, first.rows)
        self.assertEqual(again.stats.duplicate_count, 3)
        self.assertEqual(again.accounts[0].metrics, first.accounts[0].metrics)

    def test_merge_disabled_ignores_existing(self) -> None:
        d = FieldDictionary()
        first = ingest(_FILE_ONE, d, True)
        second = ingest(_FILE_TWO, d, False, existing=first.state)

        self.assertEqual(len(second.rows), 2)
        self.assertEqual(second.stats.duplicate_count, 0)

    def test_existing_state_is_not_mutated(self) -> None:
        d = FieldDictionary()
        first = ingest(_FILE_ONE, d, True)
        ingest(_FILE_TWO, d, True, existing=first.state)
        self.assertEqual(len(first.state.rows), 3)
        self.assertEqual(first.accounts[0].metrics["views"], 600)

    def test_platform_hint_overrides_detection(self) -> None:
        result = ingest(_INSTAGRAM, FieldDictionary(), True, "facebook")
        self.assertEqual(result.stats.platform, "facebook")
        self.assertEqual(result.rows[0]["platform"], "facebook")
        self.assertEqual(len(result.stats.warnings), 1)

    def test_unknown_platform_uses_default(self) -> None:
        text = "Post,Egen\n1,x\n"
        result = ingest(text, FieldDictionary(), True, unknown_default="instagram")
        self.assertEqual(result.stats.platform, "instagram")
        self.assertEqual(result.stats.decision.source, "default")

    def test_leading_zero_post_ids_stay_text(self) -> None:
        text = "Publicerings-id,Visningar\n00123,5\n"
        result = ingest(text, FieldDictionary(), True, "facebook")
        self.assertEqual(result.rows[0]["post_id"], "00123")
        self.assertEqual(result.rows[0]["views"], 5)

    def test_alias_columns_feed_identity_and_metrics(self) -> None:
        text = "Publicerings-id,page_id,impressions\n1,77,10\n1,77,10\n2,0077,5\n"
        result = ingest(text, FieldDictionary(), True, "facebook")

        self.assertEqual(result.stats.duplicate_count, 1)
        self.assertEqual([(a.account_id, a.metrics["views"]) for a in result.accounts], [("77", 10), ("0077", 5)])
        self.assertEqual(result.rows[0]["impressions"], 10)

    def test_empty_csv(self) -> None:
        with self.assertRaises(ValidationError):
            ingest("", FieldDictionary(), True)

    def test_empty_state_default(self) -> None:
        result = ingest(_FILE_ONE, FieldDictionary(), True, existing=IngestState())
        self.assertEqual(len(result.rows), 3)


class TestAnalyze(unittest.TestCase):
    def test_analyze(self) -> None:
        result = analyze(_FILE_ONE, preview_rows=2)
        self.assertEqual(result.header_names[0], "Publicerings-id")
        self.assertEqual(result.row_count_estimate, 3)
        self.assertEqual(result.platform_guess.platform, "facebook")
        self.assertEqual(len(result.sample_rows), 2)
        self.assertEqual(result.sample_rows[0]["Publicerings-id"], "101")

    def test_analyze_instagram(self) -> None:
        self.assertEqual(analyze(_INSTAGRAM).platform_guess.platform, "instagram")


class TestValidateHeaders(unittest.TestCase):
    def test_missing_post_id(self) -> None:
        result = validate_headers(["Sid-id", "Räckvidd", "Egen"], FieldDictionary(), required=["post_id", "account_id"])

        self.assertFalse(result.is_valid)
        self.assertEqual([m.canonical for m in result.missing], ["post_id"])
        self.assertEqual(result.missing[0].display_name, "Post ID")
        self.assertIn("Publicerings-id", result.missing[0].examples)
        self.assertEqual([(f.header, f.canonical) for f in result.found], [("Sid-id", "account_id"), ("Räckvidd", "reach")])
        self.assertEqual(result.unknown, ["Egen"])

    def test_valid_when_required_present(self) -> None:
        result = validate_headers(["publicerings-ID", "Sid-id"], FieldDictionary(), required=["post_id", "account_id"])
        self.assertTrue(result.is_valid)
        self.assertEqual(result.missing, [])

    def test_default_requires_every_canonical_field(self) -> None:
        d = FieldDictionary()
        result = validate_headers(["Publicerings-id"], d)
        self.assertFalse(result.is_valid)
        self.assertEqual(len(result.missing), len(d.canonical_fields()) - 1)


class TestCoerceRow(unittest.TestCase):
    def test_identity_fields_are_not_coerced(self) -> None:
        row = coerce_row({"post_id": "12", "account_id": "007", "views": "12", "Egen": "3.5"})
        self.assertEqual(row, {"post_id": "12", "account_id": "007", "views": 12, "Egen": 3.5})


if __name__ == "__main__":
    unittest.main()
