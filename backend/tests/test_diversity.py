"""Tests for services/ranking/diversity.py"""
import pytest


def _with_quality(candidate, score):
    candidate.assign_score("quality_score", float(score), "quality")
    return candidate


class TestDimensionExtractors:
    """Test how candidates are grouped."""

    def test_stance(self, make_candidate):
        """Stance comes from cue words in title and abstract."""
        from literature_ranker.services.ranking.diversity import stance_of
        
        assert stance_of(make_candidate(title="Evidence in support of carbon pricing", abstract="")) == "supportive"
        assert stance_of(make_candidate(title="A critique of carbon pricing", abstract="")) == "critical"
        assert stance_of(make_candidate(title="A balanced assessment", abstract="")) == "neutral"
        assert stance_of(make_candidate(title="Carbon pricing", abstract="")) == "unspecified"

    def test_subfield_period_source(self, make_candidate):
        """Subfield is the first domain, period a 5-year bucket, source case-folded."""
        from literature_ranker.services.ranking.diversity import period_of, source_of, subfield_of
        
        candidate = make_candidate(domains=["Geography", "Economics"], year=2017, source="PubMed")
        assert subfield_of(candidate) == "geography"
        assert period_of(candidate) == "2015-2019"
        assert source_of(candidate) == "pubmed"
        assert period_of(make_candidate(year=None)) == "unspecified"


class TestDiversitySampler:
    """Test round-robin sampling."""

    def test_pass_through_when_within_max(self, climate_pool):
        """A set that fits is returned unchanged but tagged."""
        from literature_ranker.core.purposes import DiversityDimension
        from literature_ranker.services.ranking import DiversitySampler
        
        sampler = DiversitySampler(DiversityDimension.SOURCE)
        selected = sampler.sample(climate_pool, 80)
        
        assert [c.id for c in selected] == [c.id for c in climate_pool]
        assert all(c.diversity_tag.startswith("source:") for c in climate_pool)

    def test_round_robin_across_groups(self, make_candidate):
        """Each group contributes its best member in turn."""
        from literature_ranker.core.purposes import DiversityDimension
        from literature_ranker.services.ranking import DiversitySampler
        
        ranked = [
            _with_quality(make_candidate(title=f"a{i}", source="a"), 50) for i in range(4)
        ] + [
            _with_quality(make_candidate(title=f"b{i}", source="b"), 50) for i in range(2)
        ]
        selected = DiversitySampler(DiversityDimension.SOURCE).sample(ranked, 4)
        
        assert [c.title for c in selected] == ["a0", "a1", "b0", "b1"]

    def test_quality_floor_excludes(self, make_candidate):
        """Members below the floor are never drawn."""
        from literature_ranker.core.purposes import DiversityDimension
        from literature_ranker.services.ranking import DiversitySampler
        
        ranked = [
            _with_quality(make_candidate(title="a0", source="a"), 60),
            _with_quality(make_candidate(title="b0", source="b"), 10),
            _with_quality(make_candidate(title="a1", source="a"), 60),
            _with_quality(make_candidate(title="a2", source="a"), 60),
        ]
        selected = DiversitySampler(DiversityDimension.SOURCE, quality_floor=20).sample(ranked, 3)
        
        assert [c.title for c in selected] == ["a0", "a1", "a2"]

    def test_never_exceeds_max(self, climate_pool):
        """Sampling cuts an over-sized set down to max."""
        from literature_ranker.core.purposes import DiversityDimension
        from literature_ranker.services.ranking import DiversitySampler
        
        for candidate in climate_pool:
            _with_quality(candidate, 50)
        selected = DiversitySampler(DiversityDimension.SUBFIELD).sample(climate_pool, 9)
        
        assert len(selected) == 9
        assert {c.diversity_tag for c in selected} == {
            "subfield:environmental science", "subfield:geography", "subfield:economics"
        }

    def test_for_profile(self):
        """The sampler follows the purpose's dimension and floor."""
        from literature_ranker.core.purposes import DiversityDimension, get_purpose_registry
        from literature_ranker.services.ranking import DiversitySampler
        
        profile = get_purpose_registry().get("literature_synthesis")
        sampler = DiversitySampler.for_profile(profile)
        
        assert sampler.dimension == DiversityDimension.SUBFIELD
        assert sampler.quality_floor == 50


class TestDiversityMetrics:
    """Test coverage metrics."""

    def test_even_spread(self, make_candidate):
        """Equal groups give entropy 1 and Gini 0."""
        from literature_ranker.core.purposes import DiversityDimension
        from literature_ranker.services.ranking import diversity_metrics
        
        pool = [make_candidate(title=f"{s}{i}", source=s) for s in ("a", "b") for i in range(3)]
        metrics = diversity_metrics(pool, DiversityDimension.SOURCE)
        
        assert metrics.unique_values == 2
        assert metrics.entropy == pytest.approx(1.0)
        assert metrics.gini == pytest.approx(0.0)
        assert metrics.underrepresented == []

    def test_underrepresented_values(self, make_candidate):
        """Values under 5% of the set are reported."""
        from literature_ranker.core.purposes import DiversityDimension
        from literature_ranker.services.ranking import diversity_metrics
        
        pool = [make_candidate(title=f"a{i}", source="a") for i in range(30)]
        pool.append(make_candidate(title="rare", source="b"))
        metrics = diversity_metrics(pool, DiversityDimension.SOURCE)
        
        assert metrics.underrepresented == ["b"]
        assert metrics.gini > 0
        assert 0 < metrics.entropy < 1

    def test_empty(self):
        """No candidates gives zeroed metrics."""
        from literature_ranker.services.ranking import diversity_metrics
        
        metrics = diversity_metrics([])
        assert metrics.unique_values == 0
        assert metrics.entropy == 0.0
