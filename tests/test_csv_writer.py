"""
Tests for the CSV writer and triage export.
"""

from clash_triage.exporters.csv_writer import (
    EXPORT_COLUMNS,
    EXPORT_FILENAME,
    build_export_rows,
    to_csv_text,
    write_export,
)
from clash_triage.models import (
    ClashSeverity,
    ClassificationResult,
    Discipline,
    EnrichedClash,
)
from clash_triage.parsers.navisworks_csv import parse_clash_csv


class TestToCsvText:
    """Test generic record serialization."""

    def test_empty_records_produce_nothing(self) -> None:
        assert to_csv_text([]) == ""

    def test_header_bare_values_quoted(self) -> None:
        """Header cells are bare; every value is quoted."""
        text = to_csv_text([{"A": "1", "B": "two"}, {"A": "3", "B": "four"}])

        assert text == 'A,B\n"1","two"\n"3","four"'

    def test_embedded_quotes_doubled(self) -> None:
        text = to_csv_text([{"Note": 'say "hi", then leave'}])

        assert text == 'Note\n"say ""hi"", then leave"'

    def test_missing_and_none_values_are_empty(self) -> None:
        """Column order comes from the first record; gaps serialize as empty."""
        # Arrange
        records = [
            {"A": "1", "B": None},
            {"B": "2"},
        ]

        # Act
        text = to_csv_text(records)

        # Assert
        assert text.split("\n") == ["A,B", '"1",""', '"","2"']

    def test_enum_values_written_by_value(self) -> None:
        text = to_csv_text([{"Severity": ClashSeverity.DESIGN_ISSUE}])

        assert text == 'Severity\n"Design Issue"'


class TestExport:
    """Test the fixed-column triage export."""

    def _clashes(self) -> list[EnrichedClash]:
        raws = parse_clash_csv(
            "clash name,distance,item 1 name,item 1 layer,item 2 name,item 2 layer\n"
            "C1,0.1,Duct,M,Beam,S\n"
            'C2,0.2,"Pipe, 50mm",P,Wall,A'
        )
        return [EnrichedClash.from_raw(raw) for raw in raws]

    def test_export_columns_and_values(self) -> None:
        # Arrange
        clashes = self._clashes()
        clashes[0].mark_processing()
        clashes[0].complete(
            ClassificationResult(
                clash_id="clash-1",
                severity=ClashSeverity.CRITICAL,
                responsibility=Discipline.MEP,
                description="Duct through beam web",
            )
        )

        # Act
        rows = build_export_rows(clashes)

        # Assert
        assert list(rows[0].keys()) == list(EXPORT_COLUMNS)
        assert rows[0] == {
            "ID": "clash-1",
            "Item 1": "Duct",
            "Item 2": "Beam",
            "Distance": "0.1",
            "AI Status": "COMPLETED",
            "AI Severity": "Critical",
            "AI Responsibility": "MEP",
            "AI Description": "Duct through beam web",
        }
        assert rows[1]["AI Status"] == "PENDING"
        assert rows[1]["AI Severity"] == "Unknown"
        assert rows[1]["AI Description"] == ""

    def test_export_preserves_imported_fields(self) -> None:
        """Ids and user-visible fields survive import followed by export."""
        clashes = self._clashes()

        rows = build_export_rows(clashes)

        assert [(r["ID"], r["Item 1"], r["Item 2"], r["Distance"]) for r in rows] == [
            ("clash-1", "Duct", "Beam", "0.1"),
            ("clash-2", "Pipe, 50mm", "Wall", "0.2"),
        ]

    def test_write_export_file(self, tmp_path) -> None:
        # Arrange
        path = tmp_path / "out" / EXPORT_FILENAME

        # Act
        written = write_export(self._clashes(), path)

        # Assert
        assert written == path
        lines = path.read_text(encoding="utf-8").split("\n")
        assert lines[0] == ",".join(EXPORT_COLUMNS)
        assert lines[2].startswith('"clash-2","Pipe, 50mm","Wall","0.2","PENDING"')
        assert len(lines) == 3

    def test_write_export_skips_empty(self, tmp_path) -> None:
        path = tmp_path / EXPORT_FILENAME

        assert write_export([], path) is None
        assert not path.exists()

    def test_default_filename(self) -> None:
        assert EXPORT_FILENAME == "zaki_triage_export.csv"
