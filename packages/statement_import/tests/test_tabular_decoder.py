"""Tests for raw upload decoding into a cell grid."""

import io

import openpyxl
import pytest

from packages.statement_import.errors import FileFormatError
from packages.statement_import.tabular import _split_line, decode_table, detect_delimiter


class TestDelimiterDetection:
    def test_comma_by_default(self):
        assert detect_delimiter("Date,Description,Amount") == ","

    def test_semicolon_beats_comma(self):
        assert detect_delimiter("Dato;Tekst;Beløb 1,00") == ";"

    def test_tab_beats_semicolon_and_comma(self):
        assert detect_delimiter("Dato\tTekst;x,y") == "\t"


def test_semicolon_file_is_split_into_cells():
    content = "Dato;Tekst;Beløb\n01-03-2024;Salary;15000,00\n".encode("utf-8")
    table = decode_table(content, "statement.csv")

    assert table.delimiter == ";"
    assert table.rows == [
        ["Dato", "Tekst", "Beløb"],
        ["01-03-2024", "Salary", "15000,00"],
    ]


def test_empty_lines_are_dropped():
    content = b"\n\nDate,Description,Amount\n\n2024-01-05,Rent,-500\n\n"
    table = decode_table(content, "statement.csv")
    assert len(table.rows) == 2


def test_quoted_cells_keep_embedded_delimiters():
    content = b'Date,Description,Amount\n2024-01-05,"Rent, March","-500.00"\n'
    table = decode_table(content, "statement.csv")
    assert table.rows[1][:3] == ["2024-01-05", "Rent, March", "-500.00"]


def test_narrow_preamble_rows_do_not_break_decoding():
    content = b"Konto;1234\nDate;Description;Amount;Balance\n2024-01-05;Rent;-500;1000\n"
    table = decode_table(content, "export.txt")

    assert table.rows[0] == ["Konto", "1234", "", ""]
    assert table.rows[2] == ["2024-01-05", "Rent", "-500", "1000"]


def test_unterminated_quote_only_affects_its_own_line():
    content = (
        "Dato;Tekst;Beløb\n"
        '01-03-2024;"Rema 1000;-50,00\n'
        "02-03-2024;Rent;-5000,00\n"
        "03-03-2024;Salary;15000,00\n"
    ).encode("utf-8")

    table = decode_table(content, "statement.csv")

    assert table.rows == [
        ["Dato", "Tekst", "Beløb"],
        ["01-03-2024", "Rema 1000", "-50,00"],
        ["02-03-2024", "Rent", "-5000,00"],
        ["03-03-2024", "Salary", "15000,00"],
    ]


def test_single_quoted_cells_are_unquoted():
    content = b"'Date','Description',Amount\n'2024-01-05','Rent','-500'\n"
    table = decode_table(content, "statement.csv")

    assert table.rows == [
        ["Date", "Description", "Amount"],
        ["2024-01-05", "Rent", "-500"],
    ]


def test_mismatched_quotes_are_left_alone():
    content = b"Date,Description,Amount\n2024-01-05,'Rent\"x,-500\n"
    table = decode_table(content, "statement.csv")
    assert table.rows[1][1] == "'Rentx"


def test_split_line_pads_to_width_and_drops_quote_marks():
    assert _split_line('a;"b;c', ";", 4) == ["a", "b", "c", ""]


def test_latin1_file_is_decoded():
    content = "Dato;Tekst;Beløb\n01-03-2024;Købmand;-10,00\n".encode("latin-1")
    table = decode_table(content, "statement.csv")
    assert table.rows[0][2] == "Beløb"
    assert table.rows[1][1] == "Købmand"


@pytest.mark.parametrize("content", [b"", b"\n\n   \n", b"\r\n\r\n"])
def test_empty_file_raises(content):
    with pytest.raises(FileFormatError):
        decode_table(content, "empty.csv")


def _workbook_bytes(sheets):
    wb = openpyxl.Workbook()
    wb.remove(wb.active)
    for title, rows in sheets:
        ws = wb.create_sheet(title)
        for row in rows:
            ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def test_spreadsheet_reads_first_sheet_only():
    content = _workbook_bytes(
        [
            ("March", [["Dato", "Tekst", "Beløb"], ["01-03-2024", "Salary", 15000.5]]),
            ("Notes", [["ignored", "sheet"]]),
        ]
    )
    table = decode_table(content, "statement.xlsx")

    assert table.delimiter is None
    assert table.rows[0] == ["Dato", "Tekst", "Beløb"]
    assert table.rows[1] == ["01-03-2024", "Salary", "15000.5"]
    assert all("ignored" not in row for row in table.rows)


def test_spreadsheet_blank_rows_and_cells_become_empty_strings():
    content = _workbook_bytes(
        [("Sheet", [["Date", "Description", "Amount"], [None, None, None], ["2024-01-05", None, -5]])]
    )
    table = decode_table(content, "statement.xlsx")

    assert len(table.rows) == 2
    assert table.rows[1] == ["2024-01-05", "", "-5"]


def test_encrypted_spreadsheet_without_password_raises(monkeypatch):
    from packages.statement_import import tabular

    class FakeOfficeFile:
        def __init__(self, f):
            pass

        def is_encrypted(self):
            return True

    monkeypatch.setattr(tabular.msoffcrypto, "OfficeFile", FakeOfficeFile)

    with pytest.raises(FileFormatError, match="Password required"):
        decode_table(tabular._OLE2_MAGIC + b"payload", "locked.xlsx")


def test_encrypted_spreadsheet_with_wrong_password_raises(monkeypatch):
    from packages.statement_import import tabular

    class FakeOfficeFile:
        def __init__(self, f):
            pass

        def load_key(self, password):
            pass

        def decrypt(self, out):
            raise Exception("Key verification failed")

    monkeypatch.setattr(tabular.msoffcrypto, "OfficeFile", FakeOfficeFile)

    with pytest.raises(FileFormatError, match="Invalid password"):
        decode_table(tabular._OLE2_MAGIC + b"payload", "locked.xlsx", password="nope")
