"""Tests for value normalization: per-class transforms, nulls and idempotence."""

import pytest

from prediction_validation.normalizer import (
    DEFAULT_CLASS,
    NormalizationRule,
    build_rules,
    is_null_value,
    normalize_group_label,
    normalize_value,
    parameter_class,
)


# Representative raw values per parameter, used for property checks.
SAMPLES = [
    ("site_language", "ko-KR"),
    ("site_language", " EN-us "),
    ("AP_DATA_LANG", "ja"),
    ("price", "₩135,000"),
    ("price", "1,234.50"),
    ("price", 0),
    ("price", "0.00"),
    ("product_discount", "-10%"),
    ("item_id", " SKU-001 "),
    ("site_name", "mall"),
    ("channel", " Mobile "),
    ("content_group", "pdp"),
    ("content_group", "Product Detail"),
    ("content_group", "search-result"),
    ("content_group", "Brand Landing"),
    ("item_brand", "NIKE"),
    ("item_brand", "NULL"),
    ("page_title", "  Spring Sale  "),
    ("page_title", ""),
    ("page_title", None),
]


# ──────────────────────────────────────────────────
# Null handling
# ──────────────────────────────────────────────────

class TestNullValues:

    @pytest.mark.parametrize("raw", [None, "", "   ", "null", "NULL", " Null "])
    def test_null_forms(self, raw):
        assert is_null_value(raw)

    @pytest.mark.parametrize("raw", ["0", 0, "none", "-"])
    def test_not_null(self, raw):
        assert not is_null_value(raw)

    @pytest.mark.parametrize("name", ["site_language", "price", "item_id", "content_group", "anything"])
    @pytest.mark.parametrize("raw", [None, "", "  ", "null"])
    def test_every_class_maps_null_forms_to_none(self, name, raw):
        assert normalize_value(name, raw) is None

    def test_transform_that_empties_value_gives_none(self):
        """A price with no digits at all is unset, not an empty string."""
        assert normalize_value("price", "N/A") is None


class TestZeroAsNull:
    """Zero on a price/count field is the platform's unset default."""

    @pytest.mark.parametrize("raw", ["0", "0.0", "0.00", 0, 0.0, "₩0"])
    def test_quantity_zero_is_none(self, raw):
        assert normalize_value("price", raw) is None

    def test_search_result_count_zero_is_none(self):
        assert normalize_value("search_result_count", "0") is None

    def test_nonzero_quantity_kept(self):
        assert normalize_value("price", "10") == "10"

    def test_zero_on_non_quantity_kept(self):
        assert normalize_value("item_brand", "0") == "0"

    def test_zero_on_unlisted_price_suffix_kept(self):
        """_price suffix makes a name numeric, not quantity-like."""
        assert normalize_value("shipping_price", "0") == "0"


# ──────────────────────────────────────────────────
# Per-class transforms
# ──────────────────────────────────────────────────

class TestLocale:

    @pytest.mark.parametrize("raw,expected", [
        ("ko-KR", "ko"),
        ("ko", "ko"),
        ("EN-us", "en"),
        (" ja ", "ja"),
    ])
    def test_language_prefix(self, raw, expected):
        assert normalize_value("site_language", raw) == expected

    def test_contains_language_matches_locale_class(self):
        assert parameter_class("user_language") == "locale"


class TestNumeric:

    @pytest.mark.parametrize("raw,expected", [
        ("135,000", "135000"),
        ("₩135,000", "135000"),
        ("$1,234.50", "1234.50"),
        (135000, "135000"),
        ("-10%", "-10"),
    ])
    def test_strip_non_numeric(self, raw, expected):
        assert normalize_value("price", raw) == expected

    def test_suffix_rule(self):
        assert parameter_class("shipping_price") == "numeric"

    @pytest.mark.parametrize("raw", ["abc-", ".", "-", "N/A.", "--"])
    def test_no_digits_is_none(self, raw):
        assert normalize_value("price", raw) is None


class TestIdentifierAndMode:

    def test_identifier_lowercased(self):
        assert normalize_value("item_id", " SKU-001 ") == "sku-001"

    def test_id_suffix(self):
        assert parameter_class("order_id") == "identifier"

    def test_mode_uppercased(self):
        assert normalize_value("site_name", " mall ") == "MALL"


class TestGroupLabel:

    @pytest.mark.parametrize("raw,expected", [
        ("PDP", "PRODUCT_DETAIL"),
        ("pdp", "PRODUCT_DETAIL"),
        ("Product Detail", "PRODUCT_DETAIL"),
        ("product-detail", "PRODUCT_DETAIL"),
        ("PRODUCT_DETAIL", "PRODUCT_DETAIL"),
        ("home", "MAIN"),
        ("search", "SEARCH_RESULT"),
        ("plp", "PRODUCT_LIST"),
        ("other", "OTHERS"),
        ("unknown", "OTHERS"),
    ])
    def test_aliases(self, raw, expected):
        assert normalize_value("content_group", raw) == expected

    def test_unknown_label_uppercased(self):
        assert normalize_value("content_group", " brand landing ") == "BRAND LANDING"

    def test_direct_call(self, config):
        assert normalize_group_label("thank-you", config) == "ORDER_COMPLETE"

    @pytest.mark.parametrize("name", ["content_group", "AP_DATA_PAGETYPE", "page_type"])
    def test_group_parameter_names(self, name):
        assert parameter_class(name) == "group_label"


class TestDefault:

    def test_trim_and_lowercase(self):
        assert normalize_value("page_title", "  Spring Sale  ") == "spring sale"

    def test_unknown_name_falls_through(self):
        assert parameter_class("completely_new_param") == DEFAULT_CLASS

    def test_null_literal_any_case(self):
        assert normalize_value("item_brand", "NULL") is None


# ──────────────────────────────────────────────────
# Rule dispatch
# ──────────────────────────────────────────────────

class TestRuleDispatch:

    def test_default_rule_is_last(self, config):
        rules = build_rules(config)
        assert rules[-1].name == DEFAULT_CLASS
        assert [r.name for r in rules[:-1]] == ["locale", "numeric", "identifier", "mode", "group_label"]

    def test_extra_rule_takes_precedence(self, config):
        sku = NormalizationRule("sku", lambda name: name == "item_id", lambda v: v.strip().upper())
        rules = build_rules(config, extra_rules=[sku])
        assert parameter_class("item_id", config, rules) == "sku"
        assert normalize_value("item_id", " abc-1 ", config, rules) == "ABC-1"

    def test_rule_list_without_catch_all(self, config):
        only_locale = [r for r in build_rules(config) if r.name == "locale"]
        assert normalize_value("item_brand", " Nike ", config, only_locale) == "nike"

    def test_custom_config(self, minimal_config):
        assert normalize_value("lang", "fr-FR", minimal_config) == "fr"
        assert normalize_value("amount", "0", minimal_config) is None
        # site_language is not a locale parameter in this config
        assert normalize_value("site_language", "ko-KR", minimal_config) == "ko-kr"


# ──────────────────────────────────────────────────
# Properties
# ──────────────────────────────────────────────────

class TestProperties:

    @pytest.mark.parametrize("name,raw", SAMPLES)
    def test_idempotent(self, name, raw):
        once = normalize_value(name, raw)
        assert normalize_value(name, once) == once

    @pytest.mark.parametrize("name,raw", SAMPLES)
    def test_deterministic(self, name, raw):
        assert normalize_value(name, raw) == normalize_value(name, raw)

    @pytest.mark.parametrize("name,raw", SAMPLES)
    def test_result_is_str_or_none(self, name, raw):
        result = normalize_value(name, raw)
        assert result is None or isinstance(result, str)
