"""
Unit tests for relevance scoring, categorization and prioritization.
"""

import pytest

from inquiry_desk.config import Category, Priority
from inquiry_desk.intake.domain import Candidate, RelevanceScorer, RelevanceVocabulary


@pytest.fixture
def vocabulary():
    return RelevanceVocabulary()


class TestRelevanceScore:
    """Score arithmetic and the admit decision."""

    def test_question_about_apps_is_admitted(self, vocabulary):
        """Solution phrase, question mark and app term push the score past 83"""
        candidate = Candidate(
            title="How do I find an app for subscriptions?",
            external_reference="t/1",
            views=600,
            replies=12,
            likes=3,
        )

        assessment = RelevanceScorer.assess(candidate, vocabulary)

        assert assessment.score >= 83
        assert assessment.admitted is True
        assert assessment.priority == Priority.NORMAL
        assert assessment.category == Category.APPS.value

    def test_announcement_is_rejected(self, vocabulary):
        """An exclusion phrase takes 30 off the base score"""
        candidate = Candidate(title="Upcoming maintenance window announcement", external_reference="t/2")

        score, signals = RelevanceScorer.score(candidate, vocabulary)
        assessment = RelevanceScorer.assess(candidate, vocabulary)

        assert score == 20
        assert "-30 exclusion:announcement" in signals
        assert assessment.admitted is False

    def test_score_is_clamped(self, vocabulary):
        """Scores stay within 0..100"""
        noisy = Candidate(
            title="Need help: which app for shipping, payment and checkout? Please help, stuck",
            external_reference="t/3",
            views=10_000,
            replies=500,
        )
        quiet = Candidate(
            title="Welcome to the announcement webinar, introducing office hours",
            external_reference="t/4",
        )

        assert RelevanceScorer.score(noisy, vocabulary)[0] == 100
        assert RelevanceScorer.score(quiet, vocabulary)[0] == 0

    def test_engagement_boosts(self, vocabulary):
        """Views over 50 add 5, replies over 2 add 10"""
        base = Candidate(title="Storefront photos", external_reference="t/5")
        boosted = Candidate(title="Storefront photos", external_reference="t/6", views=51, replies=3)

        assert RelevanceScorer.score(base, vocabulary)[0] == 50
        assert RelevanceScorer.score(boosted, vocabulary)[0] == 65

    def test_threshold_is_strict(self, vocabulary):
        """A score equal to the threshold is rejected"""
        strict = vocabulary.model_copy(update={"admit_threshold": 50})
        candidate = Candidate(title="Storefront photos", external_reference="t/7")

        assert RelevanceScorer.assess(candidate, strict).admitted is False

    def test_assessment_is_deterministic(self, vocabulary):
        """Identical input always gives the identical assessment"""
        candidate = Candidate(
            title="Looking for a shipping app, orders stuck?",
            external_reference="t/8",
            body="We need help with delivery rates",
            views=120,
        )

        first = RelevanceScorer.assess(candidate, vocabulary)
        second = RelevanceScorer.assess(candidate, vocabulary)

        assert first == second


class TestClassification:
    """Category and priority derivation."""

    def test_first_matching_category_wins(self, vocabulary):
        """'app' is checked before 'shipping'"""
        assert RelevanceScorer.categorize("Shipping app recommendations", vocabulary) == Category.APPS.value
        assert RelevanceScorer.categorize("Delivery times in winter", vocabulary) == Category.SHIPPING.value

    def test_default_category(self, vocabulary):
        """Titles matching no rule fall back to General"""
        assert RelevanceScorer.categorize("Hello everyone", vocabulary) == Category.GENERAL.value

    def test_high_engagement_is_high_priority(self, vocabulary):
        """Any metric over the high band gives high priority"""
        candidate = Candidate(title="Checkout broken", external_reference="t/9", likes=11)

        assert RelevanceScorer.prioritize(candidate, vocabulary) == Priority.HIGH

    def test_urgency_keyword_without_engagement(self, vocabulary):
        """Urgency keywords only count below the engagement bands"""
        quiet = Candidate(title="Checkout is down", external_reference="t/10")
        busy = Candidate(title="Checkout is down", external_reference="t/11", views=501)

        assert RelevanceScorer.prioritize(quiet, vocabulary) == Priority.URGENT
        assert RelevanceScorer.prioritize(busy, vocabulary) == Priority.NORMAL

    def test_classification_runs_on_rejected_candidates(self, vocabulary):
        """Rejected candidates still carry a category and priority"""
        candidate = Candidate(title="Theme announcement", external_reference="t/12")

        assessment = RelevanceScorer.assess(candidate, vocabulary)

        assert assessment.admitted is False
        assert assessment.category == Category.THEMES.value
        assert assessment.priority == Priority.NORMAL

    def test_vocabulary_normalises_phrases(self):
        """Phrases are lowercased and de-duplicated"""
        vocabulary = RelevanceVocabulary(app_terms=["App", "app", " Plugin ", ""])

        assert vocabulary.app_terms == ["app", "plugin"]
