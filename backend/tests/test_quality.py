"""Tests for services/ranking/quality.py"""
import pytest


class TestSubScores:
    """Test the independent quality sub-scores."""

    @pytest.mark.parametrize("words,expected", [
        (6000, 100.0),
        (4500, 92.5),
        (3000, 85.0),
        (1500, 65.0),
        (500, 40.0),
        (200, 20.0),
        (100, 10.0),
        (0, 5.0),
    ])
    def test_content_depth(self, words, expected):
        """Piecewise interpolation over word-count breakpoints."""
        from literature_ranker.services.ranking.quality import content_depth_score
        
        assert content_depth_score(words) == pytest.approx(expected)

    def test_citation_impact_is_per_year(self):
        """Citations are normalized by age in years."""
        from literature_ranker.services.ranking.quality import citation_impact_score
        
        assert citation_impact_score(100, 2024, 2024) == pytest.approx(100.0)
        assert citation_impact_score(100, 2014, 2024) == pytest.approx(60.0)
        assert citation_impact_score(0, 2014, 2024) == pytest.approx(5.0)

    def test_citation_impact_unknown_year(self):
        """Missing years count as one year old."""
        from literature_ranker.services.ranking.quality import citation_impact_score
        
        assert citation_impact_score(10, None, 2024) == pytest.approx(60.0)

    def test_venue_prestige_tiers(self):
        """Impact factor wins over quartile, quartile over the venue name."""
        from literature_ranker.schemas.candidate import Venue
        from literature_ranker.services.ranking.quality import venue_prestige_score
        
        assert venue_prestige_score(Venue(name="x", impact_factor=25.0, quartile="Q4")) == 90.0
        assert venue_prestige_score(Venue(name="Nature Communications", quartile="Q2")) == 50.0
        assert venue_prestige_score(Venue(name="Nature Communications")) == 90.0
        assert venue_prestige_score(Venue(name="PLOS ONE")) == 50.0
        assert venue_prestige_score(Venue(name="Journal of Regional Studies")) == 30.0
        assert venue_prestige_score(Venue(name="arXiv")) == 10.0

    def test_venue_floor(self):
        """The table-wide floor lifts low venue scores."""
        from literature_ranker.schemas.candidate import Venue
        from literature_ranker.services.ranking.quality import venue_prestige_score
        
        assert venue_prestige_score(Venue(name="bioRxiv"), floor=25.0) == 25.0
        assert venue_prestige_score(Venue(name="The Lancet"), floor=25.0) == 90.0

    def test_methodology_categories(self):
        """Each category adds up to 20; three categories add a 20 bonus."""
        from literature_ranker.services.ranking.quality import methodology_score
        
        text = "A randomized controlled trial with regression and interviews"
        assert methodology_score(text) == 60.0
        assert methodology_score("no design words here") == 0.0

    def test_diversity_potential(self):
        """Viewpoint and geographic cues raise the base of 50."""
        from literature_ranker.services.ranking.quality import diversity_potential_score
        
        assert diversity_potential_score("a global debate") == 68.0
        assert diversity_potential_score("plain text") == 50.0


class TestComposeScore:
    """Test the weighted composite."""

    def test_weighted_sum(self):
        """content 100 with weight 0.5 and nothing else gives 50."""
        from literature_ranker.core.purposes import QualityWeights
        from literature_ranker.schemas.candidate import QualityBreakdown
        from literature_ranker.services.ranking import compose_score
        
        weights = QualityWeights(content=0.5, citation=0.3, venue=0.2)
        breakdown = QualityBreakdown(
            content_depth=100, citation_impact=0, venue_prestige=0,
            methodology=0, diversity_potential=0,
        )
        
        assert compose_score(breakdown, weights) == 50.0
        assert compose_score(breakdown, weights, full_text_bonus=15) == 65.0

    def test_clamped_to_100(self):
        """The full-text bonus cannot push the composite past 100."""
        from literature_ranker.core.purposes import QualityWeights
        from literature_ranker.schemas.candidate import QualityBreakdown
        from literature_ranker.services.ranking import compose_score
        
        breakdown = QualityBreakdown(
            content_depth=100, citation_impact=100, venue_prestige=100,
            methodology=100, diversity_potential=100,
        )
        assert compose_score(breakdown, QualityWeights(content=1.0), full_text_bonus=20) == 100.0


class TestPurposeAwareQualityScorer:
    """Test scoring single candidates and batches."""

    def test_score_does_not_mutate(self, make_candidate):
        """score() returns the composite without writing to the candidate."""
        from literature_ranker.services.ranking import PurposeAwareQualityScorer
        
        candidate = make_candidate()
        composite, breakdown = PurposeAwareQualityScorer(current_year=2024).score(candidate, "qualitative_analysis")
        
        assert 0 <= composite <= 100
        assert breakdown.content_depth > 0
        assert candidate.quality_score is None

    def test_full_text_bonus_is_additive(self, make_candidate):
        """Verified full text adds the purpose's bonus on top of the weighted sum."""
        from literature_ranker.services.ranking import PurposeAwareQualityScorer
        
        scorer = PurposeAwareQualityScorer(current_year=2024)
        plain = make_candidate(word_count=800)
        full = make_candidate(word_count=800, full_text="Full body text of the article.")
        
        plain_score, _ = scorer.score(plain, "qualitative_analysis")
        full_score, breakdown = scorer.score(full, "qualitative_analysis")
        
        assert breakdown.full_text_bonus == 15
        assert full_score == pytest.approx(plain_score + 15)

    def test_purpose_changes_weights(self, make_candidate):
        """Different purposes weigh the same candidate differently."""
        from literature_ranker.services.ranking import PurposeAwareQualityScorer
        
        scorer = PurposeAwareQualityScorer(current_year=2024)
        candidate = make_candidate(abstract="A global debate among diverse perspectives. " * 5, venue="Nature")
        
        q_score, _ = scorer.score(candidate, "q_methodology")
        synthesis_score, _ = scorer.score(candidate, "literature_synthesis")
        assert q_score != synthesis_score

    def test_unknown_purpose(self, make_candidate):
        """An unknown purpose is invalid input."""
        from literature_ranker.core.exceptions import InvalidInputError
        from literature_ranker.services.ranking import PurposeAwareQualityScorer
        
        with pytest.raises(InvalidInputError):
            PurposeAwareQualityScorer().score(make_candidate(), "brainstorming")

    def test_score_batch_writes_and_partitions(self, climate_pool):
        """Batch scoring writes scores and splits at the floor in one pass."""
        from literature_ranker.services.ranking import PurposeAwareQualityScorer
        
        result = PurposeAwareQualityScorer(current_year=2024).score_batch(climate_pool, "q_methodology", floor=30)
        
        assert len(result.kept) + len(result.rejected) == len(climate_pool)
        assert all(c.quality_score >= 30 for c in result.kept)
        assert all(c.quality_score < 30 for c in result.rejected)
        assert all(c.quality_breakdown is not None for c in climate_pool)
        assert all(c.score_owner("quality_score") == "quality" for c in climate_pool)

    def test_score_batch_stats(self, climate_pool):
        """Batch stats summarize the composite distribution."""
        from literature_ranker.services.ranking import PurposeAwareQualityScorer
        
        result = PurposeAwareQualityScorer(current_year=2024).score_batch(climate_pool, "q_methodology")
        stats = result.stats
        scores = [c.quality_score for c in climate_pool]
        
        assert stats.count == 50
        assert stats.min == pytest.approx(min(scores))
        assert stats.max == pytest.approx(max(scores))
        assert stats.min <= stats.median <= stats.max
        assert stats.full_text_count == 0
        assert stats.pass_rate == pytest.approx(len(result.kept) / 50, abs=1e-4)

    def test_default_floor_is_lowest_threshold(self, make_candidate):
        """Without a floor, the lowest scheduled threshold is used."""
        from literature_ranker.services.ranking import PurposeAwareQualityScorer
        
        candidate = make_candidate(abstract="", title="x", year=2024)
        result = PurposeAwareQualityScorer(current_year=2024).score_batch([candidate], "literature_synthesis")
        
        assert candidate.quality_score < 50
        assert result.rejected == [candidate]

    def test_empty_batch(self):
        """An empty batch yields empty results."""
        from literature_ranker.services.ranking import PurposeAwareQualityScorer
        
        result = PurposeAwareQualityScorer().score_batch([], "q_methodology")
        assert result.kept == [] and result.rejected == []
        assert result.stats.count == 0
