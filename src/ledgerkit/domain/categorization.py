"""Rule-based categorization of transaction descriptions.

Rules are regular expressions with a confidence. Users can teach the engine
by correcting a category: keywords from the description become (or boost)
machine-generated rules.
"""

import logging
import re
import threading
from typing import Iterable, Optional

from ledgerkit.config import LedgerConfig
from ledgerkit.database.base import Database
from ledgerkit.domain.entities import (
    BankStatementLine,
    CategorizationResult,
    CategorizationRule,
    LearningResult,
    RuleResult,
)
from ledgerkit.domain.errors import NotFoundError, ValidationError, rule_not_found
from ledgerkit.domain.validation import validate_categorization_rule

logger = logging.getLogger(__name__)

MIN_KEYWORD_LENGTH = 4
_PUNCTUATION = re.compile(r"[^\w\s]")


def extract_keywords(description: str, stop_words: Iterable[str] = ()) -> list[str]:
    """Pull distinctive words out of a description.

    Words are lowercased with punctuation removed; short words and stop
    words are dropped. Order of first appearance is kept.
    """
    stop = set(stop_words)
    keywords = []
    for word in _PUNCTUATION.sub("", description.lower()).split():
        if len(word) < MIN_KEYWORD_LENGTH or word in stop or word in keywords:
            continue
        keywords.append(word)
    return keywords


def keyword_pattern(keyword: str) -> str:
    """Whole-word pattern for a learned keyword."""
    return rf"\b{re.escape(keyword)}\b"


class CategorizationEngine:
    """Service for categorization rules and suggestions."""

    def __init__(self, db: Database, config: Optional[LedgerConfig] = None):
        """Initialize categorization engine.

        Args:
            db: Database instance
            config: Confidence defaults and learning parameters
        """
        self.db = db
        self.config = config or LedgerConfig()
        self._patterns: dict[tuple[int, str], re.Pattern] = {}
        self._patterns_guard = threading.Lock()

    def create_rule(
        self,
        name: str,
        pattern: str,
        category: str,
        subcategory: Optional[str] = None,
        confidence: Optional[float] = None,
    ) -> RuleResult:
        """Create a categorization rule.

        Returns:
            RuleResult with the rule, or None and the errors
        """
        if confidence is None:
            confidence = self.config.default_rule_confidence
        validation = validate_categorization_rule(name, pattern, category, confidence)
        if not validation.is_valid:
            return RuleResult(rule=None, validation=validation)
        rule_id = self.db.create_categorization_rule(
            name=name,
            pattern=pattern,
            category=category,
            subcategory=subcategory,
            confidence=float(confidence),
        )
        logger.info("Created categorization rule '%s' (%s)", name, rule_id)
        return RuleResult(rule=self.db.get_categorization_rule(rule_id), validation=validation)

    def list_rules(
        self, machine_generated: Optional[bool] = None, active_only: bool = False
    ) -> list[CategorizationRule]:
        """List categorization rules, optionally only learned or only manual ones."""
        return self.db.list_categorization_rules(active_only=active_only, machine_generated=machine_generated)

    def delete_rule(self, rule_id: int) -> None:
        """Delete a categorization rule.

        Raises:
            NotFoundError: If the rule doesn't exist
        """
        if self.db.get_categorization_rule(rule_id) is None:
            raise NotFoundError(rule_not_found(rule_id))
        self.db.delete_categorization_rule(rule_id)

    def _compiled(self, rule: CategorizationRule) -> Optional[re.Pattern]:
        key = (rule.id, rule.pattern)
        with self._patterns_guard:
            compiled = self._patterns.get(key)
            if compiled is None:
                try:
                    compiled = re.compile(rule.pattern, re.IGNORECASE)
                except re.error as e:
                    logger.warning("Skipping categorization rule '%s': invalid pattern: %s", rule.name, e)
                    return None
                self._patterns[key] = compiled
            return compiled

    def matching_rules(self, description: str) -> list[CategorizationRule]:
        """Active rules matching a description, best first."""
        matches = []
        for rule in self.db.list_categorization_rules(active_only=True):
            compiled = self._compiled(rule)
            if compiled is not None and compiled.search(description):
                matches.append(rule)
        matches.sort(key=lambda r: (-r.confidence, -r.usage_count))
        return matches

    def categorize(self, description: str) -> CategorizationResult:
        """Suggest a category for a description.

        The highest-confidence matching rule wins, ties going to the more
        used rule. The winner's usage count is incremented.

        Returns:
            CategorizationResult; category is None when no rule matches
        """
        matches = self.matching_rules(description)
        if not matches:
            return CategorizationResult()
        best = matches[0]
        self.db.update_categorization_rule(best.id, usage_increment=1)
        return CategorizationResult(
            category=best.category,
            subcategory=best.subcategory,
            confidence=best.confidence,
            rule_id=best.id,
        )

    def categorize_lines(
        self,
        lines: Optional[Iterable[BankStatementLine]] = None,
        *,
        cancel: Optional[threading.Event] = None,
    ) -> list[tuple[BankStatementLine, CategorizationResult]]:
        """Suggest categories for unreconciled lines that have none yet.

        Args:
            lines: Lines to process (defaults to every unreconciled line)
            cancel: Event checked between lines to stop early

        Returns:
            (line, result) pairs for the lines that received a category
        """
        if lines is None:
            lines = self.db.list_statement_lines(reconciled=False)

        categorized = []
        for line in lines:
            if cancel is not None and cancel.is_set():
                logger.info("Categorization cancelled")
                break
            if line.reconciled or line.suggested_category is not None:
                continue
            result = self.categorize(line.description)
            if result.category is None:
                continue
            self.db.set_line_suggestion(line.id, result.category, result.confidence)
            categorized.append((self.db.get_statement_line(line.id), result))
        return categorized

    def extract_keywords(self, description: str) -> list[str]:
        """Keywords of a description, using the configured stop words."""
        return extract_keywords(description, self.config.stop_words)

    def learn_from_correction(
        self, description: str, category: str, subcategory: Optional[str] = None
    ) -> LearningResult:
        """Learn from a user assigning a category to a description.

        Each keyword either boosts the learned rule that already maps it to
        this category, or becomes a new machine-generated rule.

        Raises:
            ValidationError: If the category is blank
        """
        if not category or not category.strip():
            raise ValidationError("Category is required")

        keywords = self.extract_keywords(description)
        created, boosted = [], []
        for keyword in keywords:
            pattern = keyword_pattern(keyword)
            existing = self.db.find_categorization_rule(pattern, category)
            if existing is not None:
                confidence = min(1.0, round(existing.confidence + self.config.learning_boost, 6))
                self.db.update_categorization_rule(existing.id, confidence=confidence, usage_increment=1)
                boosted.append(self.db.get_categorization_rule(existing.id))
            else:
                rule_id = self.db.create_categorization_rule(
                    name=f"Auto-learned: {keyword}",
                    pattern=pattern,
                    category=category,
                    subcategory=subcategory,
                    confidence=self.config.learned_rule_confidence,
                    machine_generated=True,
                )
                created.append(self.db.get_categorization_rule(rule_id))

        logger.info(
            "Learned '%s' from %r: %d rules created, %d boosted", category, description, len(created), len(boosted)
        )
        return LearningResult(keywords=tuple(keywords), created=tuple(created), boosted=tuple(boosted))

    def prune_machine_generated(self, below_confidence: float) -> int:
        """Delete learned rules under a confidence. Returns how many were deleted."""
        pruned = 0
        for rule in self.db.list_categorization_rules(machine_generated=True):
            if rule.confidence < below_confidence:
                self.db.delete_categorization_rule(rule.id)
                pruned += 1
        if pruned:
            logger.info("Pruned %d learned categorization rules below %.2f", pruned, below_confidence)
        return pruned
