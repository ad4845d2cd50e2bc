"""Rule codec tests."""
import pytest
from rule_adapter.core.errors import FieldRangeError, UnsupportedOperationError
from rule_adapter.models import CasbinRule, make_rule_model
from rule_adapter.services.codec import (
    RuleCodec, parse_line, section_of, set_values, to_line, to_record, to_values
)


class TestRecordConversion:
    """Conversion between value lists and rule records."""

    @pytest.mark.parametrize("values", [
        [],
        ["alice"],
        ["alice", "data1", "read"],
        ["alice", "domain1", "data1", "read", "allow", "2024"],
    ])
    def test_values_survive_record_conversion(self, values):
        record = to_record("p", values)
        assert to_values(record) == values

    def test_unset_fields_are_empty_strings(self):
        record = to_record("g", ["alice", "admin"])
        assert record.ptype == "g"
        assert record.v0 == "alice"
        assert record.v1 == "admin"
        assert [record.v2, record.v3, record.v4, record.v5] == ["", "", "", ""]

    def test_more_than_six_values_rejected(self):
        with pytest.raises(FieldRangeError):
            to_record("p", ["a", "b", "c", "d", "e", "f", "g"])

    def test_reading_stops_at_first_empty_field(self):
        record = CasbinRule(ptype="p", v0="alice", v1="", v2="read", v3="", v4="", v5="")
        assert to_values(record) == ["alice"]

    def test_record_uses_requested_model(self):
        model = make_rule_model("codec_test_rule")
        record = to_record("p", ["alice"], model)
        assert isinstance(record, model)
        assert record.__tablename__ == "codec_test_rule"

    def test_set_values_clears_trailing_fields(self):
        record = to_record("p", ["alice", "data1", "read"])
        set_values(record, ["bob", "data2"])
        assert record.fields == ["bob", "data2", "", "", "", ""]

    def test_set_values_rejects_too_many_values(self):
        record = to_record("p", ["alice"])
        with pytest.raises(FieldRangeError):
            set_values(record, list("abcdefg"))


class TestPolicyLines:
    """Policy line serialization."""

    def test_to_line(self):
        assert to_line(to_record("p", ["alice", "data1", "read"])) == "p, alice, data1, read"

    def test_parse_line(self):
        assert parse_line("p, alice, data1, read") == ("p", ["alice", "data1", "read"])

    def test_parse_line_keeps_quoted_commas(self):
        ptype, values = parse_line('p, alice, "keyMatch(/a, /b)", read')
        assert ptype == "p"
        assert values == ["alice", "keyMatch(/a, /b)", "read"]

    @pytest.mark.parametrize("line", ["", "   ", "# comment"])
    def test_blank_and_comment_lines(self, line):
        assert parse_line(line) == ("", [])

    def test_section_of(self):
        assert section_of("p2") == "p"
        assert section_of("g") == "g"


class TestCodecVersions:
    """Version-selected codec strategy."""

    def test_default_is_current_version(self):
        codec = RuleCodec()
        assert codec.version == 2
        assert not codec.is_legacy

    def test_unknown_version_rejected(self):
        with pytest.raises(ValueError):
            RuleCodec(version=3)

    def test_legacy_codec_skips_gaps(self):
        record = CasbinRule(ptype="p", v0="alice", v1="", v2="read", v3="", v4="", v5="")
        assert RuleCodec(version=1).to_values(record) == ["alice", "read"]
        assert RuleCodec().to_values(record) == ["alice"]

    def test_legacy_codec_has_no_update(self):
        with pytest.raises(UnsupportedOperationError):
            RuleCodec(version=1).check_update_supported()
        RuleCodec().check_update_supported()

    def test_to_records(self):
        records = RuleCodec().to_records("p", [["alice"], ["bob", "data2"]])
        assert [to_values(r) for r in records] == [["alice"], ["bob", "data2"]]
