"""Tests for the keyword category classifier."""

import json

import pytest
from pydantic import ValidationError

from catalog_ingest.category_detector import CategoryDetector, load_category_rules, normalize_text
from catalog_ingest.category_rules import DEFAULT_CATEGORY_RULES
from catalog_ingest.models import CategoryRule, DetectionInput, DetectionSource


MUG_RULE = CategoryRule(category="Mugs", keywords=("mug", "cup", "coffee"), priority=50, min_confidence=30)


class TestExplicitOverride:

    def test_explicit_type_wins(self, detector):
        result = detector.detect(title="coffee mug cup", explicit_type="Lamps")
        assert result.category == "Lamps"
        assert result.confidence == 100
        assert result.matched_keywords == []
        assert result.source == DetectionSource.EXPLICIT

    def test_blank_explicit_type_ignored(self, detector):
        result = detector.detect(title="coffee mug", explicit_type="   ")
        assert result.category == "Mugs"


class TestScoring:

    def test_adding_a_matching_keyword_never_lowers_confidence(self, detector):
        one = detector.score_rule(MUG_RULE, DetectionInput(description="a mug"))
        two = detector.score_rule(MUG_RULE, DetectionInput(description="a mug and a cup"))
        assert one == pytest.approx(38.33)
        assert two == pytest.approx(76.67)
        assert two >= one

    def test_title_match_scores_higher(self, detector):
        in_title = detector.score_rule(MUG_RULE, DetectionInput(title="mug"))
        in_description = detector.score_rule(MUG_RULE, DetectionInput(description="mug"))
        assert in_title == pytest.approx(in_description + 3)

    def test_substring_match_without_phrase_bonus(self):
        rule = CategoryRule(category="Art", keywords=("art", "zzz"), priority=1)
        detector = CategoryDetector([rule])
        assert detector.detect(title="party time").confidence == 53.0
        assert detector.detect(title="art time").confidence == 58.0

    def test_confidence_clamped(self, detector):
        score = detector.score_rule(MUG_RULE, DetectionInput(title="coffee mug cup"))
        assert score == 100

    def test_no_match_scores_zero(self, detector):
        assert detector.score_rule(MUG_RULE, DetectionInput(title="lamp")) == 0

    def test_html_stripped_from_description(self, detector):
        result = detector.detect(description="<p>Ceramic <b>mug</b> &amp; saucer</p>")
        assert result.category == "Mugs"
        assert result.source == DetectionSource.DESCRIPTION


class TestRuleSelection:

    def test_threshold_not_reached_falls_back(self):
        rules = [
            CategoryRule(category="Strict", keywords=("lamp", "shade", "bulb"), priority=10, min_confidence=90),
            CategoryRule(category="Other", keywords=("zzz",), priority=0),
        ]
        result = CategoryDetector(rules).detect(title="lamp")
        assert result.category == "Other"
        assert result.confidence == 0
        assert result.source == DetectionSource.MULTIPLE

    def test_equal_score_keeps_higher_priority(self):
        rules = [
            CategoryRule(category="Low", keywords=("lamp",), priority=10),
            CategoryRule(category="High", keywords=("lamp",), priority=20),
            CategoryRule(category="Other", keywords=("zzz",), priority=0),
        ]
        assert CategoryDetector(rules).detect(title="lamp").category == "High"

    def test_early_stop(self):
        rules = [
            CategoryRule(category="Broad", keywords=("lamp", "shade"), priority=30),
            CategoryRule(category="Narrow", keywords=("lamp",), priority=10),
        ]
        full = CategoryDetector(rules).detect(description="lamp")
        assert full.category == "Narrow"
        assert full.confidence == 100

        stopped = CategoryDetector(rules, early_stop_confidence=50, early_stop_priority=20)
        result = stopped.detect(description="lamp")
        assert result.category == "Broad"
        assert result.confidence == 55.0

    def test_fallback_is_lowest_priority_rule(self, detector):
        result = detector.detect(title="bicycle")
        assert result.category == "Misc"
        assert detector.fallback_category == "Misc"

    def test_fallback_override(self, small_rules):
        detector = CategoryDetector(small_rules, fallback_category="Uncategorized")
        assert detector.detect(title="bicycle").category == "Uncategorized"

    def test_text_truncated_to_max_length(self, small_rules):
        detector = CategoryDetector(small_rules, max_text_length=10)
        assert detector.detect(title="x" * 20 + " mug").category == "Misc"

    def test_deterministic(self, detector):
        fields = DetectionInput(title="Coffee cup", tags=["mug"], handle="coffee-cup")
        assert detector.detect(fields) == detector.detect(fields)

    def test_empty_rule_table_rejected(self):
        with pytest.raises(ValueError):
            CategoryDetector([])


class TestSource:

    @pytest.mark.parametrize("fields, expected", [
        ({"title": "Coffee Mug"}, DetectionSource.TITLE),
        ({"title": "Something", "tags": ["mug"]}, DetectionSource.TAGS),
        ({"title": "Something", "tags": "mug, cup"}, DetectionSource.TAGS),
        ({"description": "a mug"}, DetectionSource.DESCRIPTION),
        ({"handle": "coffee-mug"}, DetectionSource.HANDLE),
    ])
    def test_source_priority(self, detector, fields, expected):
        result = detector.detect(**fields)
        assert result.category == "Mugs"
        assert result.source == expected


class TestRuleTable:

    def test_rules_sorted_by_priority(self, small_rules):
        detector = CategoryDetector(list(reversed(small_rules)))
        assert [r.priority for r in detector.rules] == [50, 40, 0]
        assert detector.available_categories() == ["Mugs", "Posters", "Misc"]

    def test_get_rule(self, detector):
        assert detector.get_rule("Posters").keywords == ("poster", "print", "wall art")
        assert detector.get_rule("Nope") is None

    def test_with_rule_returns_new_detector(self, detector):
        lamp = CategoryRule(category="Lamps", keywords=("lamp",), priority=60)
        extended = detector.with_rule(lamp)
        assert extended.detect(title="desk lamp").category == "Lamps"
        assert detector.get_rule("Lamps") is None

    def test_with_rule_replaces_same_category(self, detector):
        replaced = detector.with_rule(CategoryRule(category="Mugs", keywords=("tumbler",), priority=50))
        assert replaced.get_rule("Mugs").keywords == ("tumbler",)
        assert len(replaced.rules) == len(detector.rules)

    def test_batch_detect(self, detector):
        results = detector.batch_detect([DetectionInput(title="mug"), DetectionInput(title="poster print")])
        assert [r.category for r in results] == ["Mugs", "Posters"]

    def test_rules_are_frozen(self):
        with pytest.raises(ValidationError):
            MUG_RULE.priority = 1


class TestDefaultRules:

    def test_catch_all_is_fallback(self):
        detector = CategoryDetector()
        assert DEFAULT_CATEGORY_RULES[-1].category == "Art Painting"
        assert detector.fallback_category == "Art Painting"

    def test_specific_rule_detected(self):
        result = CategoryDetector().detect(
            title="Ek Onkar Waheguru Khanda",
            tags=["sikh", "gurbani", "guru", "khalsa", "golden temple", "amritsar"],
        )
        assert result.category == "Sikh Art"
        assert result.confidence == 100
        assert result.source == DetectionSource.TITLE


class TestLoading:

    def test_load_rules_from_json(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps([
            {"category": "Mugs", "keywords": ["mug"], "priority": 50, "min_confidence": 30},
            {"category": "Other", "keywords": ["zzz"]},
        ]))
        rules = load_category_rules(path)
        assert [r.category for r in rules] == ["Mugs", "Other"]
        assert CategoryDetector(rules).detect(title="mug").category == "Mugs"

    def test_empty_rule_file(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text("[]")
        with pytest.raises(ValueError):
            load_category_rules(path)

    def test_invalid_rule_file(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps([{"category": "Mugs", "keywords": []}]))
        with pytest.raises(ValidationError):
            load_category_rules(path)


def test_normalize_text():
    assert normalize_text("  Hello, World!  ") == "hello world"
    assert normalize_text(None) == ""
