import pytest

from spiders.core.errors import ParseError
from spiders.schema.types import KeyValuePair, TypedValue, ValueKind
from spiders.values import (
    DEFAULT_RULES,
    ValueParser,
    ValueRule,
    infer_value,
    is_valid_uri,
    parse_key_values,
    parse_token,
)


class TestRuleOrder:
    def test_rule_table_priority(self) -> None:
        assert [rule.name for rule in DEFAULT_RULES] == [
            "quoted",
            "boolean",
            "integer",
            "hexadecimal",
            "float",
            "uri",
        ]

    def test_quoted_number_stays_text(self) -> None:
        assert infer_value('"42"') == TypedValue.text("42")
        assert infer_value("'true'") == TypedValue.text("true")

    def test_quoted_uri_stays_text(self) -> None:
        assert infer_value("'file:///tmp/a.fits'") == TypedValue.text("file:///tmp/a.fits")

    def test_mismatched_quotes_are_raw_text(self) -> None:
        assert infer_value("'abc\"") == TypedValue.text("'abc\"")

    def test_booleans_are_lowercase_only(self) -> None:
        assert infer_value("true") == TypedValue.boolean(True)
        assert infer_value("false") == TypedValue.boolean(False)
        assert infer_value("True") == TypedValue.text("True")

    def test_fallback_is_raw_text(self) -> None:
        assert infer_value("hello world") == TypedValue.text("hello world")
        assert infer_value("") == TypedValue.text("")

    def test_empty_rule_table_yields_text(self) -> None:
        parser = ValueParser(rules=())
        assert parser.infer("42") == TypedValue.text("42")

    def test_custom_rule_is_consulted_first(self) -> None:
        answer = ValueRule("answer", lambda raw: raw == "42", lambda raw: TypedValue.text("answer"))
        parser = ValueParser(rules=(answer, *DEFAULT_RULES))
        assert parser.infer("42") == TypedValue.text("answer")
        assert parser.infer("43") == TypedValue.signed(43)


class TestIntegers:
    def test_plain_decimal_is_int64(self) -> None:
        assert infer_value("42") == TypedValue.signed(42, 64)
        assert infer_value("-17") == TypedValue.signed(-17, 64)
        assert infer_value("+5") == TypedValue.signed(5, 64)

    @pytest.mark.parametrize(
        "raw, kind, width",
        [
            ("7b", ValueKind.SIGNED, 8),
            ("7h", ValueKind.SIGNED, 16),
            ("7l", ValueKind.SIGNED, 32),
            ("7ll", ValueKind.SIGNED, 64),
            ("7u", ValueKind.UNSIGNED, 64),
            ("7ub", ValueKind.UNSIGNED, 8),
            ("7uh", ValueKind.UNSIGNED, 16),
            ("7ul", ValueKind.UNSIGNED, 32),
            ("7ull", ValueKind.UNSIGNED, 64),
            ("7UB", ValueKind.UNSIGNED, 8),
            ("7Ll", ValueKind.SIGNED, 64),
        ],
    )
    def test_suffix_selects_width(self, raw: str, kind: ValueKind, width: int) -> None:
        value = infer_value(raw)
        assert value.kind is kind
        assert value.width == width
        assert value.value == 7

    @pytest.mark.parametrize(
        "raw",
        [
            "128b",
            "-129b",
            "300ub",
            "-1u",
            "65536uh",
            "2147483648l",
            "9223372036854775808",
            "18446744073709551616ull",
        ],
    )
    def test_out_of_range_is_rejected(self, raw: str) -> None:
        with pytest.raises(ParseError) as excinfo:
            infer_value(raw)
        assert excinfo.value.token == raw

    def test_boundaries_are_accepted(self) -> None:
        assert infer_value("-128b") == TypedValue.signed(-128, 8)
        assert infer_value("255ub") == TypedValue.unsigned(255, 8)
        assert infer_value("18446744073709551615u") == TypedValue.unsigned(2**64 - 1, 64)

    def test_hex_is_uint64(self) -> None:
        assert infer_value("0xFF") == TypedValue.unsigned(255, 64)
        assert infer_value("0XffffFFFFffffFFFF") == TypedValue.unsigned(2**64 - 1, 64)

    def test_hex_wider_than_64_bits_is_rejected(self) -> None:
        with pytest.raises(ParseError):
            infer_value("0x1" + "0" * 16)


class TestFloats:
    @pytest.mark.parametrize(
        "raw, expected",
        [("1.5", 1.5), ("-2e3", -2000.0), (".5", 0.5), ("1.", 1.0), ("1e5", 100000.0), ("+3.25E-2", 0.0325)],
    )
    def test_float_literals(self, raw: str, expected: float) -> None:
        assert infer_value(raw) == TypedValue.float64(expected)

    def test_named_floats_are_text(self) -> None:
        assert infer_value("nan").kind is ValueKind.TEXT
        assert infer_value("inf").kind is ValueKind.TEXT


class TestUris:
    @pytest.mark.parametrize(
        "raw",
        [
            "file:///data/m31.fits",
            "http://example.com/frame.fits.gz",
            "https://example.com/a?b=c",
            "ftp://archive.example.org/pub/x.fit",
            "ftps://user@archive.example.org/x",
        ],
    )
    def test_supported_schemes(self, raw: str) -> None:
        assert is_valid_uri(raw)

    @pytest.mark.parametrize(
        "raw",
        ["gopher://example.com/x", "http://", "file://", "http://exa mple.com/", "example.com/x"],
    )
    def test_rejected_uris(self, raw: str) -> None:
        assert not is_valid_uri(raw)

    def test_uri_value(self) -> None:
        assert infer_value("file:///data/m31.fits") == TypedValue.uri_ref("file:///data/m31.fits")

    def test_unsupported_scheme_is_text(self) -> None:
        assert infer_value("gopher://example.com/x") == TypedValue.text("gopher://example.com/x")


class TestTokens:
    def test_key_value(self) -> None:
        assert parse_token("exposure=1.5") == KeyValuePair("exposure", TypedValue.float64(1.5))

    def test_bare_key_is_null(self) -> None:
        assert parse_token("verbose") == KeyValuePair("verbose", TypedValue.null())

    def test_empty_value_is_empty_text(self) -> None:
        assert parse_token("note=") == KeyValuePair("note", TypedValue.text(""))

    def test_multiple_delimiters_rejected(self) -> None:
        with pytest.raises(ParseError, match="ambiguous delimiter") as excinfo:
            parse_token("a=b=c")
        assert excinfo.value.token == "a=b=c"

    def test_parse_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_token("a=b=c")

    def test_order_and_duplicates_kept(self) -> None:
        pairs = parse_key_values(["b=2", "a=1", "b=3", "flag"])
        assert [p.key for p in pairs] == ["b", "a", "b", "flag"]
        assert pairs[2].value == TypedValue.signed(3)

    def test_batch_fails_on_first_bad_token(self) -> None:
        with pytest.raises(ParseError):
            parse_key_values(["a=1", "b=300b", "c=2"])
