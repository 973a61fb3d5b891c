"""
Intake Value Objects
====================

Relevance vocabularies and the pure scoring heuristic used to admit or
reject candidate inquiries.

The heuristic is deliberately a keyword table rather than a learned model:
every point of a score can be traced back to a matched phrase.
"""

from typing import Dict, List, Tuple

from pydantic import BaseModel, Field, field_validator

from inquiry_desk.config import Category, Priority
from inquiry_desk.intake.domain.entities import Candidate, RelevanceAssessment


DEFAULT_SOLUTION_PHRASES = [
    "looking for", "need", "help", "how to", "how do i", "how can", "find an app",
    "recommend", "suggestion", "which app", "best app", "app for", "problem with",
    "issue with", "trying to", "want to", "need to", "is there", "does anyone know",
    "can someone", "pls help", "please help", "stuck", "having trouble",
]

DEFAULT_APP_TERMS = ["app", "plugin", "integration", "tool", "solution", "software"]

DEFAULT_BUSINESS_TERMS = [
    "subscription", "shipping", "payment", "checkout", "cart", "discount",
    "upsell", "inventory", "order", "customer", "email", "seo", "marketing",
]

DEFAULT_EXCLUSION_PHRASES = [
    "about the", "announcement", "celebrating", "welcome to", "introducing",
    "community read-only", "scheduled maintenance", "maintenance notice",
    "office hours", "ama:", "webinar",
]

DEFAULT_CATEGORY_KEYWORDS: List[Tuple[str, List[str]]] = [
    (Category.APPS.value, ["app", "plugin"]),
    (Category.THEMES.value, ["theme", "design"]),
    (Category.SHIPPING.value, ["shipping", "delivery"]),
    (Category.PAYMENTS.value, ["payment", "checkout"]),
    (Category.PRODUCTS.value, ["product", "inventory"]),
    (Category.ORDERS.value, ["order", "fulfillment"]),
    (Category.MARKETING.value, ["marketing", "seo"]),
]

DEFAULT_URGENCY_KEYWORDS = ["urgent", "emergency", "critical", "down", "broken", "not working"]


class CategoryRule(BaseModel):
    """One row of the ordered category table."""
    category: str
    keywords: List[str] = Field(default_factory=list)


class EngagementThresholds(BaseModel):
    """Engagement cut-offs for one priority band (strictly greater than)."""
    views: int = Field(ge=0)
    replies: int = Field(ge=0)
    likes: int = Field(ge=0)


class RelevanceVocabulary(BaseModel):
    """
    Relevance configuration loaded from the `relevance` section of the
    pipeline YAML.

    Phrase lists are matched as lowercase substrings of the combined
    title and body.
    """
    base_score: int = 50
    admit_threshold: int = Field(default=40, description="Admit when score is strictly greater")

    solution_phrases: List[str] = Field(default_factory=lambda: list(DEFAULT_SOLUTION_PHRASES))
    solution_points: int = 15
    question_points: int = 10
    app_terms: List[str] = Field(default_factory=lambda: list(DEFAULT_APP_TERMS))
    app_points: int = 8
    business_terms: List[str] = Field(default_factory=lambda: list(DEFAULT_BUSINESS_TERMS))
    business_points: int = 5
    exclusion_phrases: List[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUSION_PHRASES))
    exclusion_points: int = 30

    views_boost_over: int = 50
    views_boost_points: int = 5
    replies_boost_over: int = 2
    replies_boost_points: int = 10

    category_rules: List[CategoryRule] = Field(
        default_factory=lambda: [
            CategoryRule(category=category, keywords=keywords)
            for category, keywords in DEFAULT_CATEGORY_KEYWORDS
        ]
    )
    default_category: str = Category.GENERAL.value

    high_priority_over: EngagementThresholds = Field(
        default_factory=lambda: EngagementThresholds(views=1000, replies=20, likes=10)
    )
    normal_priority_over: EngagementThresholds = Field(
        default_factory=lambda: EngagementThresholds(views=500, replies=10, likes=5)
    )
    urgency_keywords: List[str] = Field(default_factory=lambda: list(DEFAULT_URGENCY_KEYWORDS))

    @field_validator(
        "solution_phrases", "app_terms", "business_terms",
        "exclusion_phrases", "urgency_keywords"
    )
    @classmethod
    def normalise_phrases(cls, v: List[str]) -> List[str]:
        """Lowercase and de-duplicate while keeping order."""
        seen: Dict[str, None] = {}
        for phrase in v:
            phrase = phrase.strip().lower()
            if phrase:
                seen.setdefault(phrase, None)
        return list(seen)


class RelevanceScorer:
    """
    Pure functions for relevance scoring and classification.

    Stateless: identical candidate text and metrics always produce the
    identical assessment.
    """

    @staticmethod
    def _matches(text: str, phrases: List[str]) -> List[str]:
        return [phrase for phrase in phrases if phrase in text]

    @staticmethod
    def score(candidate: Candidate, vocabulary: RelevanceVocabulary) -> Tuple[int, List[str]]:
        """
        Compute the relevance score.

        Returns:
            Tuple of (clamped score, list of signals that contributed)
        """
        title = candidate.title.lower()
        combined = f"{title} {candidate.body.lower()}"
        score = vocabulary.base_score
        signals: List[str] = []

        for phrase in RelevanceScorer._matches(combined, vocabulary.solution_phrases):
            score += vocabulary.solution_points
            signals.append(f"+{vocabulary.solution_points} solution:{phrase}")

        if "?" in title:
            score += vocabulary.question_points
            signals.append(f"+{vocabulary.question_points} question")

        for term in RelevanceScorer._matches(combined, vocabulary.app_terms):
            score += vocabulary.app_points
            signals.append(f"+{vocabulary.app_points} app:{term}")

        for term in RelevanceScorer._matches(combined, vocabulary.business_terms):
            score += vocabulary.business_points
            signals.append(f"+{vocabulary.business_points} business:{term}")

        for phrase in RelevanceScorer._matches(combined, vocabulary.exclusion_phrases):
            score -= vocabulary.exclusion_points
            signals.append(f"-{vocabulary.exclusion_points} exclusion:{phrase}")

        if candidate.views > vocabulary.views_boost_over:
            score += vocabulary.views_boost_points
            signals.append(f"+{vocabulary.views_boost_points} views")
        if candidate.replies > vocabulary.replies_boost_over:
            score += vocabulary.replies_boost_points
            signals.append(f"+{vocabulary.replies_boost_points} replies")

        return max(0, min(100, score)), signals

    @staticmethod
    def categorize(title: str, vocabulary: RelevanceVocabulary) -> str:
        """First matching rule wins; falls back to the default category."""
        lowered = title.lower()
        for rule in vocabulary.category_rules:
            if any(keyword.lower() in lowered for keyword in rule.keywords):
                return rule.category
        return vocabulary.default_category

    @staticmethod
    def prioritize(candidate: Candidate, vocabulary: RelevanceVocabulary) -> Priority:
        """Engagement bands first, then urgency keywords in the title."""
        high = vocabulary.high_priority_over
        if candidate.views > high.views or candidate.replies > high.replies or candidate.likes > high.likes:
            return Priority.HIGH

        normal = vocabulary.normal_priority_over
        if (candidate.views > normal.views or candidate.replies > normal.replies
                or candidate.likes > normal.likes):
            return Priority.NORMAL

        title = candidate.title.lower()
        if any(keyword in title for keyword in vocabulary.urgency_keywords):
            return Priority.URGENT

        return Priority.NORMAL

    @staticmethod
    def assess(candidate: Candidate, vocabulary: RelevanceVocabulary) -> RelevanceAssessment:
        """Run the scorer and both classifiers."""
        score, signals = RelevanceScorer.score(candidate, vocabulary)
        return RelevanceAssessment(
            score=score,
            admitted=score > vocabulary.admit_threshold,
            category=RelevanceScorer.categorize(candidate.title, vocabulary),
            priority=RelevanceScorer.prioritize(candidate, vocabulary),
            signals=signals,
        )
