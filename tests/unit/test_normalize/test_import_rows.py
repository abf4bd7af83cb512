"""Unit tests for cumulative export row mapping."""

import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from note_analytics.normalize import ImportRow, map_import_row, rows_from_csv


@pytest.fixture
def temp_dir() -> Generator[Path]:
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


class TestMapImportRow:
    """Tests for header alias mapping."""

    def test_japanese_headers(self) -> None:
        """Test the Japanese export headers."""
        row = {"タイトル": "記事A", "ビュー": "1,500", "スキ": "12", "コメント": "3"}

        mapped = map_import_row(row)

        assert mapped == ImportRow(
            title="記事A",
            cumulative_pv=1500,
            cumulative_likes=12,
            cumulative_comments=3,
        )

    def test_english_headers_with_key(self) -> None:
        """Test English headers and an explicit key column."""
        row = {"key": "nabc", "Title": "A", "Views": "9", "Likes": "2", "Comments": ""}

        mapped = map_import_row(row)

        assert mapped is not None
        assert mapped.external_key == "nabc"
        assert mapped.title == "A"
        assert mapped.cumulative_pv == 9
        assert mapped.cumulative_comments == 0

    def test_unparsable_number_is_zero(self) -> None:
        """Test invalid numbers become zero."""
        mapped = map_import_row({"title": "A", "PV": "lots"})
        assert mapped is not None
        assert mapped.cumulative_pv == 0

    def test_blank_row_is_ignored(self) -> None:
        """Test a row of empty cells maps to None."""
        assert map_import_row({"title": "", "PV": "  "}) is None

    def test_row_without_identity(self) -> None:
        """Test a row with counts but no key or title."""
        mapped = map_import_row({"PV": "10"})
        assert mapped is not None
        assert not mapped.has_identity


class TestRowsFromCsv:
    """Tests for reading export files."""

    def test_reads_file_with_bom(self, temp_dir: Path) -> None:
        """Test a UTF-8 file with byte order mark."""
        path = temp_dir / "export.csv"
        path.write_text(
            "タイトル,ビュー,スキ,コメント\n記事A,100,5,1\n,,,\n記事B,20,0,0\n",
            encoding="utf-8-sig",
        )

        rows = rows_from_csv(path)

        assert [r.title for r in rows] == ["記事A", "記事B"]
        assert rows[0].cumulative_pv == 100

    def test_tolerates_ragged_rows(self, temp_dir: Path) -> None:
        """Test rows with extra cells do not break mapping."""
        path = temp_dir / "export.csv"
        path.write_text("title,pv\nA,5,extra\n", encoding="utf-8")

        rows = rows_from_csv(path)

        assert len(rows) == 1
        assert rows[0].cumulative_pv == 5
