from __future__ import annotations

from auditlens.engine.patterns import (
    calculate_pattern_stats,
    count_unique_patterns,
    get_pattern_groups,
    group_by_pattern,
    normalize_selector,
    normalize_xpath,
)


def _cards(count: int) -> list[dict]:
    return [{"selector": f".card:nth-child({i}) > img"} for i in range(1, count + 1)]


def test_positional_pseudo_classes_are_removed():
    assert normalize_selector(".card:nth-child(7) > img") == ".card > img"
    assert normalize_selector("ul > li:nth-child(5) > a") == "ul > li > a"
    assert normalize_selector("div:nth-of-type(3)") == "div"
    assert normalize_selector("li:first-child") == "li"
    assert normalize_selector("li:last-child > a") == "li > a"
    assert normalize_selector("tr:nth-last-child(2) > td:first-of-type") == "tr > td"


def test_numeric_suffixes_collapse_to_wildcard():
    assert normalize_selector("#item-123") == "#item-*"
    assert normalize_selector("#product_456") == "#product_*"
    assert normalize_selector("#789") == "#*"
    assert normalize_selector(".item-3") == ".item-*"
    assert normalize_selector(".product_12") == ".product_*"
    assert normalize_selector(".col-md-6") == ".col-md-*"


def test_hash_suffixes_collapse_to_wildcard():
    assert normalize_selector(".Component-abc123") == ".Component-*"
    assert normalize_selector(".styled-a1b2c3d4") == ".styled-*"
    assert normalize_selector(".card-header") == ".card-header"
    assert normalize_selector(".header-facade") == ".header-facade"


def test_digit_tails_without_separator_collapse_in_place():
    assert normalize_selector("#item123") == "#item*"
    assert normalize_selector(".item1") == ".item*"
    assert normalize_selector(".nav-header2") == ".nav-header*"
    assert normalize_selector("div.btn-primary2") == "div.btn-primary*"
    assert normalize_selector(".nav-header2") != normalize_selector(".btn-primary2")


def test_numeric_attribute_values_are_dropped():
    assert normalize_selector('li[data-index="3"] > a') == "li[data-index] > a"
    assert normalize_selector('input[type="text"]') == 'input[type="text"]'


def test_complex_selector():
    source = ".card:nth-child(3) > .card-body > img#image-123.thumbnail-5"
    assert normalize_selector(source) == ".card > .card-body > img#image-*.thumbnail-*"


def test_static_selectors_are_untouched():
    assert normalize_selector("header > img.logo") == "header > img.logo"
    assert normalize_selector(".header > nav > ul > li > a") == ".header > nav > ul > li > a"
    assert normalize_selector("#main-content") == "#main-content"


def test_dangling_combinators_are_stripped():
    assert normalize_selector(":first-child > a") == "a"
    assert normalize_selector("div > :nth-child(2) > span") == "div > span"


def test_empty_input_yields_empty_string():
    assert normalize_selector("") == ""
    assert normalize_selector(None) == ""
    assert normalize_xpath("") == ""
    assert normalize_xpath(None) == ""


def test_normalization_is_idempotent():
    samples = [
        ".card:nth-child(3) > .card-body > img#image-123.thumbnail-5",
        ".styled-a1b2c3d4 > .item-12-3",
        "#789 > li:first-child",
        'ul[data-row="4"] > li.col-md-6',
        "header > img.logo",
        ":last-child > a",
        "#item123 > .nav-header2",
        ".Component-abc123.col-12",
    ]
    for sample in samples:
        once = normalize_selector(sample)
        assert normalize_selector(once) == once

    for sample in ["//div[1]/p[3]", "//*[@data-index='3']/span[2]", "//a[@class='nav']"]:
        once = normalize_xpath(sample)
        assert normalize_xpath(once) == once


def test_xpath_normalization():
    assert normalize_xpath("//div[1]/p[3]") == "//div/p"
    assert normalize_xpath("//ul/li[5]/a") == "//ul/li/a"
    assert normalize_xpath("//*[@data-index='3']") == "//*[@data-index]"
    assert normalize_xpath("//a[@class='nav']") == "//a[@class='nav']"


def test_group_by_pattern_keeps_first_seen_order():
    elements = _cards(3) + [{"selector": "header > img.logo"}]
    groups = group_by_pattern(elements)

    assert list(groups) == [".card > img", "header > img.logo"]
    assert groups[".card > img"] == [
        ".card:nth-child(1) > img",
        ".card:nth-child(2) > img",
        ".card:nth-child(3) > img",
    ]


def test_group_by_pattern_accepts_scanner_field_names():
    groups = group_by_pattern([{"fullPath": ".item-1"}, {"fullPath": ".item-2"}])
    assert groups == {".item-*": [".item-1", ".item-2"]}

    xpath_groups = group_by_pattern(
        [{"xPath": "//div[1]/img"}, {"xpath": "//div[2]/img"}, {"xPath": "//header/img"}],
        use_xpath=True,
    )
    assert len(xpath_groups) == 2
    assert len(xpath_groups["//div/img"]) == 2


def test_group_by_pattern_skips_elements_without_field():
    elements = [{"selector": ".card > img"}, {"xpath": "//div"}, {"selector": ".footer > p"}, {}]
    groups = group_by_pattern(elements)

    assert set(groups) == {".card > img", ".footer > p"}
    assert sum(len(bucket) for bucket in groups.values()) == 2
    assert group_by_pattern([]) == {}


def test_count_unique_patterns():
    elements = [
        {"selector": ".item-1 > img"},
        {"selector": ".item-2 > img"},
        {"selector": ".item-3 > img"},
        {"selector": ".header > img"},
        {"selector": ".footer > img"},
    ]
    assert count_unique_patterns(elements) == 3
    assert count_unique_patterns([]) == 0


def test_pattern_groups_sorted_with_bounded_examples():
    groups = get_pattern_groups(_cards(4) + [{"selector": "header > img"}])

    assert len(groups) == 2
    assert groups[0]["pattern"] == ".card > img"
    assert groups[0]["occurrences"] == 4
    assert len(groups[0]["examples"]) == 3
    assert groups[0]["examples"][0] == ".card:nth-child(1) > img"
    assert groups[1] == {"pattern": "header > img", "occurrences": 1, "examples": ["header > img"]}


def test_pattern_groups_ties_keep_first_seen_order():
    groups = get_pattern_groups([{"selector": ".b > img"}, {"selector": ".a > img"}])
    assert [group["pattern"] for group in groups] == [".b > img", ".a > img"]


def test_pattern_stats():
    stats = calculate_pattern_stats(_cards(4) + [{"selector": "header > img"}])
    assert stats["total_occurrences"] == 5
    assert stats["unique_patterns"] == 2
    assert stats["template_ratio"] == 0.8


def test_pattern_stats_boundaries():
    unique = calculate_pattern_stats([{"selector": ".a > img"}, {"selector": ".b > img"}, {"selector": ".c > img"}])
    assert unique["template_ratio"] == 0

    shared = calculate_pattern_stats(_cards(3))
    assert shared["template_ratio"] == 1

    empty = calculate_pattern_stats([])
    assert empty == {"total_occurrences": 0, "unique_patterns": 0, "template_ratio": 0.0, "by_pattern": []}
