"""
Unit tests for the ingestion pipeline pieces.

Tests cover:
- CSV / XLSX / XLS parsing and the required-column check
- Spreadsheet cell -> string coercion
- Record normalization (trim, defaults, drops)
- Round-robin distribution balance and ordering
- Summary aggregation
"""
from datetime import date, datetime, time

import pytest
from openpyxl import Workbook

from app.listdesk.modules.agents.models import Agent
from app.listdesk.modules.distribution.errors import NoAgentsError, ParseError
from app.listdesk.modules.distribution.normalize import NormalizedRecord, normalize_record, normalize_rows
from app.listdesk.modules.distribution.parsers import normalize_extension, parse_file
from app.listdesk.modules.distribution.parsers.csv import parse_csv_bytes
from app.listdesk.modules.distribution.parsers.excel import cell_to_str
from app.listdesk.modules.distribution.service import distribute_records, summarize_distribution


def _agents(n):
    return [Agent(id=i + 1, name=f"Agent {i + 1}", email=f"a{i + 1}@agents.test") for i in range(n)]


def _records(n):
    return [NormalizedRecord(first_name=f"Name{i}", phone=str(1000 + i)) for i in range(n)]


class TestCsvParser:
    def test_rows_in_file_order(self):
        rows = list(parse_csv_bytes(b"FirstName,Phone,Notes\nAlice,111,\nBob,222,call back\n"))
        assert rows == [
            {"FirstName": "Alice", "Phone": "111", "Notes": ""},
            {"FirstName": "Bob", "Phone": "222", "Notes": "call back"},
        ]

    def test_bom_and_header_whitespace(self):
        rows = list(parse_csv_bytes(b"\xef\xbb\xbf FirstName , Phone \nAlice,111\n"))
        assert rows == [{"FirstName": "Alice", "Phone": "111"}]

    def test_skips_blank_rows_and_pads_short_rows(self):
        rows = list(parse_csv_bytes(b"FirstName,Phone,Notes\n\n,,\nCara,333\n"))
        assert rows == [{"FirstName": "Cara", "Phone": "333", "Notes": ""}]

    def test_quoted_fields(self):
        rows = list(parse_csv_bytes(b'FirstName,Phone,Notes\n"Dana, Jr",444,"said ""hi"""\n'))
        assert rows[0]["FirstName"] == "Dana, Jr"
        assert rows[0]["Notes"] == 'said "hi"'

    def test_missing_required_column(self):
        with pytest.raises(ParseError, match="Phone"):
            parse_csv_bytes(b"FirstName,Notes\nAlice,x\n")

    def test_empty_file(self):
        with pytest.raises(ParseError):
            parse_csv_bytes(b"")

    def test_not_utf8(self):
        with pytest.raises(ParseError):
            parse_csv_bytes(b"FirstName,Phone\n\xff\xfe\xfa,1\n")


class TestExcelParser:
    def test_xlsx_first_sheet(self, tmp_path):
        wb = Workbook()
        ws = wb.active
        ws.title = "Contacts"
        ws.append(["FirstName", "Phone", "Notes"])
        ws.append(["Alice", 905551234567, None])
        ws.append([None, None, None])
        ws.append(["Bob", "222", "call back"])
        other = wb.create_sheet("Ignored")
        other.append(["FirstName", "Phone"])
        other.append(["Zed", "999"])
        path = tmp_path / "contacts.xlsx"
        wb.save(path)

        rows = list(parse_file(path, ".xlsx"))
        assert rows == [
            {"FirstName": "Alice", "Phone": "905551234567", "Notes": ""},
            {"FirstName": "Bob", "Phone": "222", "Notes": "call back"},
        ]

    def test_xlsx_missing_required_column(self, tmp_path):
        wb = Workbook()
        wb.active.append(["Name", "Phone"])
        wb.active.append(["Alice", "111"])
        path = tmp_path / "bad.xlsx"
        wb.save(path)
        with pytest.raises(ParseError, match="FirstName"):
            parse_file(path, ".xlsx")

    def test_xlsx_garbage(self, tmp_path):
        path = tmp_path / "fake.xlsx"
        path.write_bytes(b"this is not a zip archive")
        with pytest.raises(ParseError):
            parse_file(path, ".xlsx")

    def test_xls_first_sheet_numbers_and_dates(self, tmp_path):
        import xlwt
        book = xlwt.Workbook()
        ws = book.add_sheet("Contacts")
        for col, title in enumerate(["FirstName", "Phone", "Notes"]):
            ws.write(0, col, title)
        ws.write(1, 0, "Alice")
        ws.write(1, 1, 905551234567.0)
        ws.write(1, 2, datetime(2024, 3, 1), xlwt.easyxf(num_format_str="YYYY-MM-DD"))
        ws.write(2, 0, "Bob")
        ws.write(2, 1, "222")
        book.add_sheet("Ignored").write(0, 0, "FirstName")
        path = tmp_path / "contacts.xls"
        book.save(str(path))

        rows = list(parse_file(path, ".xls"))
        assert rows == [
            {"FirstName": "Alice", "Phone": "905551234567", "Notes": "2024-03-01"},
            {"FirstName": "Bob", "Phone": "222", "Notes": ""},
        ]

    def test_xls_garbage(self, tmp_path):
        path = tmp_path / "fake.xls"
        path.write_bytes(b"this is not an OLE2 workbook")
        with pytest.raises(ParseError):
            parse_file(path, ".xls")

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("FirstName,Phone\n")
        with pytest.raises(ParseError):
            parse_file(path, ".txt")


class TestCellToStr:
    def test_empty_and_text(self):
        assert cell_to_str(None) == ""
        assert cell_to_str("  Alice ") == "  Alice "

    def test_numbers(self):
        assert cell_to_str(905551234567.0) == "905551234567"
        assert cell_to_str(42) == "42"
        assert cell_to_str(3.5) == "3.5"

    def test_bool_before_int(self):
        assert cell_to_str(True) == "TRUE"
        assert cell_to_str(False) == "FALSE"

    def test_dates_and_times(self):
        assert cell_to_str(datetime(2024, 3, 1)) == "2024-03-01"
        assert cell_to_str(datetime(2024, 3, 1, 14, 5, 9, 123)) == "2024-03-01T14:05:09"
        assert cell_to_str(date(2024, 3, 1)) == "2024-03-01"
        assert cell_to_str(time(9, 30)) == "09:30:00"


class TestNormalizer:
    def test_whitespace_normalizes_to_canonical(self):
        canonical = NormalizedRecord(first_name="Alice", phone="111", notes="call back")
        assert normalize_record({"FirstName": "  Alice\t", "Phone": " 111 ", "Notes": " call back  "}) == canonical

    def test_notes_default_empty(self):
        assert normalize_record({"FirstName": "Bob", "Phone": "222"}) == NormalizedRecord("Bob", "222", "")

    def test_drops_empty_required_fields(self):
        assert normalize_record({"FirstName": "Bob", "Phone": "   "}) is None
        assert normalize_record({"FirstName": "", "Phone": "222"}) is None
        assert normalize_record({"FirstName": None, "Phone": "222"}) is None

    def test_normalize_rows_counts_drops(self):
        records, dropped = normalize_rows(
            [
                {"FirstName": "A", "Phone": "1"},
                {"FirstName": "B", "Phone": ""},
                {"FirstName": "C", "Phone": "3"},
            ]
        )
        assert [r.first_name for r in records] == ["A", "C"]
        assert dropped == 1


class TestDistributor:
    def test_two_agents_scenario(self):
        agents = _agents(2)
        recs = [NormalizedRecord("Alice", "111", ""), NormalizedRecord("Bob", "222", "call back")]
        out = distribute_records(recs, agents)
        assert [(a.record.first_name, a.agent_id) for a in out] == [("Alice", 1), ("Bob", 2)]

    def test_no_agents(self):
        with pytest.raises(NoAgentsError):
            distribute_records(_records(3), [])

    def test_empty_records(self):
        assert distribute_records([], _agents(3)) == []

    @pytest.mark.parametrize("m", [1, 2, 3, 5, 7])
    @pytest.mark.parametrize("n", [1, 4, 10, 23])
    def test_balance_and_order(self, n, m):
        agents = _agents(m)
        recs = _records(n)
        out = distribute_records(recs, agents)
        assert len(out) == n

        per_agent: dict[int, list[NormalizedRecord]] = {a.id: [] for a in agents}
        for a in out:
            per_agent[a.agent_id].append(a.record)
        counts = [len(v) for v in per_agent.values()]
        assert all(c in (n // m, -(-n // m)) for c in counts)

        # Interleaving per-agent lists in round-robin order rebuilds the input order
        rebuilt = []
        for i in range(n):
            rebuilt.append(per_agent[agents[i % m].id][i // m])
        assert rebuilt == recs


class TestSummary:
    def test_zero_counts_and_agent_order(self):
        agents = _agents(3)
        out = summarize_distribution(agents, {2: 5})
        assert out == [
            {"agentId": 1, "agentName": "Agent 1", "agentEmail": "a1@agents.test", "count": 0},
            {"agentId": 2, "agentName": "Agent 2", "agentEmail": "a2@agents.test", "count": 5},
            {"agentId": 3, "agentName": "Agent 3", "agentEmail": "a3@agents.test", "count": 0},
        ]

    def test_idempotent(self):
        agents = _agents(2)
        counts = {1: 3, 2: 2}
        assert summarize_distribution(agents, counts) == summarize_distribution(agents, counts)


def test_normalize_extension():
    assert normalize_extension("Contacts.CSV") == ".csv"
    assert normalize_extension("book.final.xlsx") == ".xlsx"
    assert normalize_extension("noext") == ""
