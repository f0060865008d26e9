"""Tests for reading import files."""

import json

import pytest
from openpyxl import Workbook

from fdbms.reconcile import CONTRACT_SCHEMA, merge_import, reconstruct_bills
from fdbms.sources import ImportSourceError, load_backup, load_rows, load_sheets


def _write_workbook(path, sheets):
    workbook = Workbook()
    workbook.remove(workbook.active)
    for title, rows in sheets.items():
        sheet = workbook.create_sheet(title)
        for row in rows:
            sheet.append(row)
    workbook.save(path)
    return path


class TestLoadRows:
    def test_json_array(self, tmp_path):
        path = tmp_path / "contracts.json"
        path.write_text(json.dumps([{"Contractor": "Ali", "From": "A", "To": "B"}]))

        assert load_rows(path) == [{"Contractor": "Ali", "From": "A", "To": "B"}]

    @pytest.mark.parametrize("body", ['{"a": 1}', "[1, 2]", "not json"])
    def test_json_must_be_array_of_objects(self, tmp_path, body):
        path = tmp_path / "contracts.json"
        path.write_text(body)

        with pytest.raises(ImportSourceError):
            load_rows(path)

    def test_csv_with_bom_and_blank_rows(self, tmp_path):
        path = tmp_path / "contracts.csv"
        path.write_text("\ufeffContractor,From,To,Rate\nAli,A,B,2.5\n,,,\n", encoding="utf-8")

        rows = load_rows(path)

        assert rows == [{"Contractor": "Ali", "From": "A", "To": "B", "Rate": "2.5"}]

    def test_xlsx_first_sheet(self, tmp_path):
        path = _write_workbook(
            tmp_path / "contracts.xlsx",
            {
                "Contracts": [["Contractor", "From", "To", "Rate"], ["Ali", "A", "B", 2.5]],
                "Other": [["ignored"], ["x"]],
            },
        )

        assert load_rows(path) == [{"Contractor": "Ali", "From": "A", "To": "B", "Rate": 2.5}]

    def test_csv_text_na_is_kept(self, tmp_path):
        """Test that only empty cells are treated as missing."""
        path = tmp_path / "users.csv"
        path.write_text("Username,Role\nNA,\n")

        assert load_rows(path) == [{"Username": "NA", "Role": None}]

    def test_empty_csv(self, tmp_path):
        path = tmp_path / "contracts.csv"
        path.write_text("")

        assert load_rows(path) == []

    def test_xlsx_cells_are_plain_python(self, tmp_path):
        """Test numbers come back as int/float and blank cells as None."""
        path = _write_workbook(
            tmp_path / "contracts.xlsx",
            {"Contracts": [["Contractor", "Id", "Rate"], ["Ali", 7, None], ["Bashir", 8, 1.25]]},
        )

        rows = load_rows(path)

        assert rows[0] == {"Contractor": "Ali", "Id": 7, "Rate": None}
        assert type(rows[0]["Id"]) is int
        assert type(rows[1]["Rate"]) is float

    def test_unsupported_type(self, tmp_path):
        path = tmp_path / "contracts.txt"
        path.write_text("hello")

        with pytest.raises(ImportSourceError):
            load_rows(path)

    def test_rows_feed_merge(self, tmp_path):
        path = tmp_path / "contracts.csv"
        path.write_text("Contractor Name,From Location,To Location,Rate per KG\nAli,A,B,2.5\n")

        result = merge_import([], load_rows(path), CONTRACT_SCHEMA)

        assert result.added_count == 1
        assert result.merged[0].contract_id == 1


class TestLoadSheets:
    def test_not_a_workbook(self, tmp_path):
        path = tmp_path / "backup.xlsx"
        path.write_text("plain text")

        with pytest.raises(ImportSourceError):
            load_sheets(path)

    def test_backup_needs_bills_and_contracts(self, tmp_path):
        path = _write_workbook(tmp_path / "backup.xlsx", {"Bills": [["id"], ["b-1"]]})

        with pytest.raises(ImportSourceError, match="Invalid backup file"):
            load_backup(path)

    def test_backup_round_trip_to_bills(self, tmp_path):
        path = _write_workbook(
            tmp_path / "backup.xlsx",
            {
                "Bills": [
                    ["id", "bill_number", "netAmount", "status"],
                    ["b-1", "M-1/Oct 2025/1", 3852.5, "Processed"],
                ],
                "Bill Items": [["bill_id", "id", "mode", "bags"], ["b-1", "i-1", "Normal", 10]],
                "Contracts": [["contract_id", "contractor_name"], [1, "Ali"]],
            },
        )

        sheets = load_backup(path)
        result = reconstruct_bills(sheets)

        (bill,) = result.bills
        assert bill.bill_number == "M-1/Oct 2025/1"
        assert bill.status.value == "Processed"
        assert bill.items[0].bags == 10
