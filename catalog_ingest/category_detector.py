"""
Catalog Ingest - Keyword Category Classifier

Scores each product's text against a table of weighted keyword rules and
returns the single best category with a 0-100 confidence.

Scoring per rule:
  base   = matched keywords / rule keywords * 100
  +5     per matched keyword present as a whole phrase
  +3     per matched keyword present in the title
  capped at 100; a rule wins only at >= its min_confidence and strictly
  above the current best.
"""
from __future__ import annotations
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from pydantic import TypeAdapter

from catalog_ingest.category_rules import DEFAULT_CATEGORY_RULES
from catalog_ingest.models import (
    CategoryDetectionResult, CategoryRule, DetectionInput, DetectionSource,
    strip_html,
)

logger = logging.getLogger(__name__)

EXACT_MATCH_BONUS = 5
TITLE_MATCH_BONUS = 3
MAX_CONFIDENCE = 100.0

_NON_WORD_RE = re.compile(r"[^\w\s]")
_WS_RE = re.compile(r"\s+")


def normalize_text(text: Optional[str]) -> str:
    """Lowercase, punctuation -> space, single spaces."""
    if not text:
        return ""
    lowered = _NON_WORD_RE.sub(" ", text.lower().strip())
    return _WS_RE.sub(" ", lowered).strip()


@dataclass(frozen=True)
class _CompiledKeyword:
    keyword: str
    normalized: str
    phrase: re.Pattern

    def found_in(self, text: str) -> bool:
        return bool(self.normalized) and self.normalized in text

    def phrase_in(self, text: str) -> bool:
        return bool(self.normalized) and self.phrase.search(text) is not None


def _compile(keyword: str) -> _CompiledKeyword:
    norm = normalize_text(keyword)
    return _CompiledKeyword(
        keyword=keyword,
        normalized=norm,
        phrase=re.compile(r"(?<!\w)" + re.escape(norm) + r"(?!\w)"),
    )


# ============================================================
# Detector
# ============================================================

class CategoryDetector:
    """
    Deterministic rule-table classifier. The rule table is injected and
    never mutated; with_rule() returns a new detector.
    """

    def __init__(
        self,
        rules: Sequence[CategoryRule] = DEFAULT_CATEGORY_RULES,
        fallback_category: Optional[str] = None,
        max_text_length: int = 1000,
        early_stop_confidence: float = 90.0,
        early_stop_priority: int = 90,
    ):
        if not rules:
            raise ValueError("CategoryDetector needs at least one rule")
        # sorted() is stable: equal priorities keep table order
        self._rules: tuple[CategoryRule, ...] = tuple(
            sorted(rules, key=lambda r: -r.priority))
        self._compiled = [
            (rule, [_compile(kw) for kw in rule.keywords]) for rule in self._rules
        ]
        self.fallback_category = fallback_category or min(
            rules, key=lambda r: r.priority).category
        self.max_text_length = max_text_length
        self.early_stop_confidence = early_stop_confidence
        self.early_stop_priority = early_stop_priority

    @classmethod
    def from_settings(cls, settings: Any) -> CategoryDetector:
        rules: Sequence[CategoryRule] = DEFAULT_CATEGORY_RULES
        if settings.category_rules_path:
            rules = load_category_rules(settings.category_rules_path)
        return cls(rules, max_text_length=settings.classifier_max_text_length)

    @property
    def rules(self) -> tuple[CategoryRule, ...]:
        return self._rules

    # ----------------------------------------------------------
    # Public API
    # ----------------------------------------------------------

    def detect(
        self, fields: Optional[DetectionInput] = None, **kwargs: Any
    ) -> CategoryDetectionResult:
        if fields is None:
            fields = DetectionInput(**kwargs)

        if fields.explicit_type and fields.explicit_type.strip():
            return CategoryDetectionResult(
                category=fields.explicit_type.strip(),
                confidence=MAX_CONFIDENCE,
                matched_keywords=[],
                source=DetectionSource.EXPLICIT,
            )

        title = normalize_text(fields.title)
        tags = normalize_text(fields.tags_text)
        description = normalize_text(strip_html(fields.description))
        handle = normalize_text(fields.handle)
        vendor = normalize_text(fields.vendor)
        blob = self.build_blob(fields)

        best = CategoryDetectionResult(
            category=self.fallback_category,
            confidence=0,
            matched_keywords=[],
            source=DetectionSource.MULTIPLE,
        )

        for rule, keywords in self._compiled:
            matched = [kw for kw in keywords if kw.found_in(blob)]
            if not matched:
                continue
            confidence = self._score(len(keywords), matched, blob, title)
            if confidence >= rule.min_confidence and confidence > best.confidence:
                best = CategoryDetectionResult(
                    category=rule.category,
                    confidence=confidence,
                    matched_keywords=[kw.keyword for kw in matched],
                    source=_match_source(
                        matched, title, tags, description, handle, vendor),
                )
                logger.debug(
                    "Rule %s accepted at %.2f (%d keywords)",
                    rule.category, confidence, len(matched))
                if (confidence >= self.early_stop_confidence
                        and rule.priority >= self.early_stop_priority):
                    break

        return best

    def score_rule(self, rule: CategoryRule, fields: DetectionInput) -> float:
        """Confidence one rule would assign to these fields (0 if no match)."""
        keywords = [_compile(kw) for kw in rule.keywords]
        blob = self.build_blob(fields)
        matched = [kw for kw in keywords if kw.found_in(blob)]
        if not matched:
            return 0.0
        return self._score(len(keywords), matched, blob, normalize_text(fields.title))

    def batch_detect(self, inputs: Iterable[DetectionInput]) -> list[CategoryDetectionResult]:
        return [self.detect(fields) for fields in inputs]

    def available_categories(self) -> list[str]:
        seen: dict[str, None] = {}
        for rule in self._rules:
            seen.setdefault(rule.category, None)
        return list(seen)

    def get_rule(self, category: str) -> Optional[CategoryRule]:
        for rule in self._rules:
            if rule.category == category:
                return rule
        return None

    def with_rule(self, rule: CategoryRule) -> CategoryDetector:
        """New detector with `rule` added, replacing any rule of the same category."""
        rules = [r for r in self._rules if r.category != rule.category] + [rule]
        return CategoryDetector(
            rules,
            fallback_category=self.fallback_category,
            max_text_length=self.max_text_length,
            early_stop_confidence=self.early_stop_confidence,
            early_stop_priority=self.early_stop_priority,
        )

    def build_blob(self, fields: DetectionInput) -> str:
        raw = " ".join([
            fields.title,
            fields.tags_text,
            fields.handle,
            strip_html(fields.description),
        ])
        return normalize_text(raw)[:self.max_text_length]

    # ----------------------------------------------------------
    # Internals
    # ----------------------------------------------------------

    @staticmethod
    def _score(
        total: int, matched: list[_CompiledKeyword], blob: str, title: str
    ) -> float:
        confidence = len(matched) / total * 100
        confidence += EXACT_MATCH_BONUS * sum(1 for kw in matched if kw.phrase_in(blob))
        confidence += TITLE_MATCH_BONUS * sum(1 for kw in matched if kw.found_in(title))
        return round(min(max(confidence, 0.0), MAX_CONFIDENCE), 2)


def _match_source(
    matched: list[_CompiledKeyword],
    title: str, tags: str, description: str, handle: str, vendor: str,
) -> DetectionSource:
    for source, text in (
        (DetectionSource.TITLE, title),
        (DetectionSource.TAGS, tags),
        (DetectionSource.DESCRIPTION, description),
        (DetectionSource.HANDLE, handle),
        (DetectionSource.VENDOR, vendor),
    ):
        if any(kw.found_in(text) for kw in matched):
            return source
    return DetectionSource.MULTIPLE


# ============================================================
# Rule Loading
# ============================================================

_RULES_ADAPTER = TypeAdapter(list[CategoryRule])


def load_category_rules(path: str | Path) -> list[CategoryRule]:
    """
    Load a JSON rule table, e.g.
      [{"category": "Mugs", "keywords": ["mug", "cup"],
        "priority": 50, "min_confidence": 40}]
    """
    rules = _RULES_ADAPTER.validate_json(Path(path).read_bytes())
    if not rules:
        raise ValueError(f"Rule file {path} contains no rules")
    logger.info("Loaded %d category rules from %s", len(rules), path)
    return rules
