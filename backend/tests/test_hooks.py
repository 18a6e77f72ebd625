from backend.app.services.hooks import FALLBACK_HOOK_TAG, HOOK_RULES, classify_hook, clean_title


def test_clean_title_strips_punctuation_and_whitespace():
    assert clean_title("Hello,   World!! 2024") == "hello world 2024"
    assert clean_title("  XUYÊN-KHÔNG: tập 1  ") == "xuyên không tập 1"
    assert clean_title("snake_case") == "snake case"
    assert clean_title(None) == ""


def test_classify_hook_matches_keyword():
    assert classify_hook("Trùng Sinh làm đại gia") == "Trùng sinh"
    assert classify_hook("XUYÊN-KHÔNG về cổ đại!!") == "Xuyên không"


def test_classify_hook_first_rule_wins():
    # both "xuyên không" and "hệ thống" appear; the earlier rule decides
    assert classify_hook("Hệ thống xuyên không siêu cấp") == "Xuyên không"
    assert classify_hook("Phế vật trùng sinh quay về") == "Phế vật → nghịch thiên"


def test_classify_hook_rule_order_is_the_tiebreak():
    title = "hệ thống xuyên không"
    reversed_rules = tuple(reversed(HOOK_RULES))
    assert classify_hook(title) == "Xuyên không"
    assert classify_hook(title, rules=reversed_rules) == "Hệ thống"


def test_classify_hook_fallback():
    assert classify_hook("Cooking pasta at home") == FALLBACK_HOOK_TAG
    assert classify_hook("") == FALLBACK_HOOK_TAG


def test_classify_hook_is_pure_on_cleaned_text():
    assert classify_hook("Quỳ   xuống!!!") == classify_hook("quỳ xuống")
