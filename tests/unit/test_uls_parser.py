"""
Unit tests for the ULS flat-file parser
"""

import pytest
from datetime import date
from ingestion.parsers.uls_parser import (
    AMATEUR_SPEC,
    ENTITY_SPEC,
    parse_line,
    parse_status_date,
    spec_for_phase,
    iter_source_lines,
)
from models.base import ImportPhase
from tests.conftest import am_line, en_line, write_lines


class TestAmateurLines:
    """Test AM record parsing"""

    def test_maps_fixed_columns(self):
        """Columns 4..17 map to the license fields in order"""
        fields = ["AM", "1234567", "", "", " w1aw ", "E", "D", "6", "K1ABC", "Y",
                  "", "", "", "", "", "W1OLD", "A", "ARRL Inc "]
        record = parse_line("|".join(fields), AMATEUR_SPEC)

        assert record.call_sign == "W1AW"
        assert record.operator_class == "E"
        assert record.group_code == "D"
        assert record.region_code == "6"
        assert record.trustee_call_sign == "K1ABC"
        assert record.trustee_indicator == "Y"
        assert record.previous_call_sign == "W1OLD"
        assert record.previous_operator_class == "A"
        assert record.trustee_name == "ARRL Inc"

    def test_empty_columns_become_none(self):
        """Present-but-empty columns are null, not empty strings"""
        record = parse_line(am_line("K1ABC"), AMATEUR_SPEC)

        assert record.ve_signature is None
        assert record.trustee_name is None
        assert record.physician_certification is None

    def test_trailing_newline_ignored(self):
        """CRLF line endings do not leak into the last column"""
        record = parse_line(am_line("K1ABC", trustee_name="Club") + "\r\n", AMATEUR_SPEC)

        assert record.trustee_name == "Club"

    def test_other_tag_skipped(self):
        """EN lines produce nothing in the amateur phase"""
        assert parse_line(en_line("W1AW"), AMATEUR_SPEC) is None

    def test_short_line_dropped(self):
        """Lines with fewer than 18 columns are dropped"""
        assert parse_line("AM|1|||W1AW|E", AMATEUR_SPEC) is None

    def test_missing_call_sign_skipped(self):
        """A blank call sign column skips the line"""
        assert parse_line(am_line("   "), AMATEUR_SPEC) is None

    @pytest.mark.parametrize("line", ["", "\n", "garbage", "HD|1|2|3", "|||||"])
    def test_junk_never_raises(self, line):
        """Malformed input yields None without raising"""
        assert parse_line(line, AMATEUR_SPEC) is None

    def test_overlong_call_sign_dropped(self):
        """A call sign that cannot fit the column is dropped"""
        assert parse_line(am_line("X" * 25), AMATEUR_SPEC) is None


class TestEntityLines:
    """Test EN record parsing"""

    def test_maps_fixed_columns(self):
        record = parse_line(en_line("w1aw", licensee_id="L00123", entity_type="CL"), ENTITY_SPEC)

        assert record.call_sign == "W1AW"
        assert record.entity_type == "CL"
        assert record.licensee_id == "L00123"
        assert record.frn == "0004511143"
        assert record.entity_name == "Hiram Maxim"
        assert record.first_name == "Hiram"
        assert record.mi == "P"
        assert record.last_name == "Maxim"
        assert record.email == "w1aw@arrl.org"
        assert record.city == "Newington"
        assert record.state == "CT"
        assert record.zip_code == "06111"
        assert record.sgin == "000"
        assert record.status_date == date(2024, 1, 15)
        assert record.status_code == "A"

    def test_status_code_column_optional(self):
        """23 columns are enough; status_code is then null"""
        record = parse_line(en_line("W1AW", status_code=None), ENTITY_SPEC)

        assert record is not None
        assert record.status_code is None

    def test_bad_status_date_keeps_record(self):
        """An unparseable date nulls the field, not the record"""
        record = parse_line(en_line("W1AW", status_date="13/45/2024"), ENTITY_SPEC)

        assert record is not None
        assert record.status_date is None

    def test_short_line_dropped(self):
        assert parse_line("EN|L|L001||W1AW|I", ENTITY_SPEC) is None

    def test_am_line_skipped(self):
        assert parse_line(am_line("W1AW"), ENTITY_SPEC) is None


class TestStatusDate:
    """Test MM/DD/YYYY parsing"""

    def test_valid_date(self):
        assert parse_status_date("01/15/2024") == date(2024, 1, 15)
        assert parse_status_date("01/15/2024").isoformat() == "2024-01-15"

    @pytest.mark.parametrize("text", ["", "   ", "N/A", "n/a", None, "2024-01-15", "02/30/2024", "abc"])
    def test_unusable_values_are_none(self, text):
        """Empty, N/A, missing or invalid dates are None, never an error"""
        assert parse_status_date(text) is None


class TestSourceLines:
    """Test ordinal line iteration"""

    def test_ordinals_count_every_line(self, tmp_path):
        """Non-matching lines still advance the ordinal"""
        path = write_lines(tmp_path / "AM.dat", [am_line("W1AW"), "HD|junk", "", am_line("K1ABC")])

        lines = list(iter_source_lines(path))

        assert [ordinal for ordinal, _, _ in lines] == [1, 2, 3, 4]
        assert lines[-1][2] == path.stat().st_size

    def test_latin1_decoding(self, tmp_path):
        """Bytes outside ASCII decode with the configured encoding"""
        path = tmp_path / "EN.dat"
        path.write_bytes(en_line("W1AW", first_name="Jos\xe9").encode("latin-1") + b"\n")

        _, text, _ = next(iter_source_lines(path, "latin-1"))
        record = parse_line(text, ENTITY_SPEC)

        assert record.first_name == "José"


class TestRecordSpecs:

    def test_spec_for_phase(self):
        assert spec_for_phase(ImportPhase.AMATEUR) is AMATEUR_SPEC
        assert spec_for_phase("entity") is ENTITY_SPEC

    def test_natural_keys(self):
        amateur = parse_line(am_line("W1AW"), AMATEUR_SPEC)
        entity = parse_line(en_line("W1AW", licensee_id="L1", entity_type="L"), ENTITY_SPEC)

        assert AMATEUR_SPEC.key(amateur) == ("W1AW",)
        assert ENTITY_SPEC.key(entity) == ("W1AW", "L1", "L")
        assert AMATEUR_SPEC.table_name == "fcc_amateur_records"
        assert ENTITY_SPEC.table_name == "fcc_entity_records"
