import re

from attribute_resolver import KEYWORD_CLASSES, resolve_attribute

ATTRS = ["TradeId", "Amount", "SourceCountry", "TradeDate"]


def test_direct_match_is_case_insensitive():
    assert resolve_attribute("show me the AMOUNT", ATTRS) == "Amount"


def test_direct_match_wins_over_keyword_class():
    # "from" would fire the origin class, but TradeDate appears verbatim
    assert resolve_attribute("tradedate from last week", ATTRS) == "TradeDate"


def test_direct_match_tie_break_follows_schema_order():
    text = "amount and tradeid"
    assert resolve_attribute(text, ["TradeId", "Amount"]) == "TradeId"
    assert resolve_attribute(text, ["Amount", "TradeId"]) == "Amount"


def test_origin_keyword():
    assert resolve_attribute("records from China", ATTRS) == "SourceCountry"


def test_destination_keyword():
    attrs = ["TradeId", "DestinationCountry"]
    assert resolve_attribute("shipped to Germany", attrs) == "DestinationCountry"


def test_monetary_keyword_maps_cost_to_amount():
    assert resolve_attribute("cost over budget", ATTRS) == "Amount"


def test_monetary_fragment_order():
    # "amount" is tried before "price"
    assert resolve_attribute("price", ["UnitPrice", "TotalAmount"]) == "TotalAmount"


def test_temporal_keyword_includes_comparison_words():
    assert resolve_attribute("trades after 2025-02-25", ATTRS) == "TradeDate"
    assert resolve_attribute("which day", ["Id", "CreatedTimestamp"]) == "CreatedTimestamp"


def test_categorical_keyword():
    assert resolve_attribute("category books", ["Id", "ProductCategory"]) == "ProductCategory"


def test_keyword_must_be_whole_word():
    # "tomorrow" contains "to" but is not the word "to"
    assert resolve_attribute("tomorrow", ["Id", "DestinationCountry"]) is None


def test_keyword_class_without_candidates_falls_through():
    # origin fires but nothing contains "source"/"from"; monetary still can
    attrs = ["Id", "Price"]
    assert resolve_attribute("cost from the catalogue", attrs) == "Price"


def test_no_match():
    assert resolve_attribute("xyz123 blah", ATTRS) is None
    assert resolve_attribute("", ATTRS) is None
    assert resolve_attribute("amount", []) is None


def test_resolver_is_deterministic():
    answers = {resolve_attribute("records from China", ATTRS) for _ in range(5)}
    assert answers == {"SourceCountry"}


def test_custom_keyword_table():
    rules = [("currency", re.compile(r"\busd\b", re.IGNORECASE), ("currency",))]
    attrs = ["TxnRef", "CurrencyCode"]
    assert resolve_attribute("paid in USD", attrs, rules) == "CurrencyCode"
    assert resolve_attribute("paid in USD", attrs, KEYWORD_CLASSES) is None
