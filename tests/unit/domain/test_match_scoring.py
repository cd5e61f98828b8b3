"""Tests for deterministic catalog match scoring."""

from tunevault.domain.entities import CatalogRelease, LocalAlbumDescriptor
from tunevault.domain.value_objects import rank_candidates, score_candidate, similarity


def _abbey_road(**overrides) -> CatalogRelease:
    data = {
        "id": "release-abbey-road",
        "title": "Abbey Road",
        "artist_credit": "The Beatles",
        "date": "1969-09-26",
        "track_count": 17,
    }
    data.update(overrides)
    return CatalogRelease(**data)


LOCAL = LocalAlbumDescriptor(
    title="Abbey Road", artist_name="The Beatles", year=1969, track_count=17
)


class TestSimilarity:
    """Test normalized string similarity."""

    def test_identical_after_normalization(self) -> None:
        """Case, punctuation and diacritics don't count."""
        assert similarity("Abbey Road", "abbey road!") == 100
        assert similarity("Björk", "bjork") == 100

    def test_both_empty_is_full_match(self) -> None:
        """Two empty strings are identical."""
        assert similarity("", None) == 100

    def test_one_edit_in_three_chars(self) -> None:
        """1 - 1/3 = 66.67%, rounded to 67."""
        assert similarity("abc", "abd") == 67

    def test_completely_different(self) -> None:
        """No shared characters at equal length scores 0."""
        assert similarity("abc", "xyz") == 0


class TestScoreCandidate:
    """Test score_candidate()."""

    def test_perfect_match_scores_100(self) -> None:
        """Abbey Road / The Beatles / 1969 / 17 tracks against itself is 100."""
        score = score_candidate(_abbey_road(), LOCAL)

        assert score.confidence == 100
        assert score.reasons == [
            "Exact title match",
            "Exact artist match",
            "Year matches",
            "Track count matches",
        ]

    def test_year_off_by_one_gets_half_credit(self) -> None:
        """40 + 35 + 7.5 + 10 = 92.5, rounded half up to 93."""
        score = score_candidate(_abbey_road(date="1970"), LOCAL)

        assert score.confidence == 93
        assert "Year close (1970 vs 1969)" in score.reasons

    def test_track_count_off_by_two_gets_half_credit(self) -> None:
        """40 + 35 + 15 + 5 = 95."""
        score = score_candidate(_abbey_road(track_count=15), LOCAL)

        assert score.confidence == 95
        assert "Track count close (15 vs 17)" in score.reasons

    def test_track_count_far_off_gets_nothing(self) -> None:
        """40 + 35 + 15 + 0 = 90."""
        score = score_candidate(_abbey_road(track_count=30), LOCAL)

        assert score.confidence == 90

    def test_missing_release_date_drops_year_component(self) -> None:
        """Without a date the year weight leaves the maximum too, so no penalty."""
        score = score_candidate(_abbey_road(date=None), LOCAL)

        assert score.confidence == 100
        assert "Year matches" not in score.reasons

    def test_missing_artist_credit_drops_artist_component(self) -> None:
        """No credit → artist weight is not counted."""
        score = score_candidate(_abbey_road(artist_credit=""), LOCAL)

        assert score.confidence == 100
        assert "Exact artist match" not in score.reasons

    def test_unknown_local_track_count_drops_component(self) -> None:
        """Local album without a track count is judged on the rest."""
        local = LocalAlbumDescriptor(title="Abbey Road", artist_name="The Beatles", year=1969)

        assert score_candidate(_abbey_road(track_count=3), local).confidence == 100

    def test_title_only_mismatch(self) -> None:
        """A totally different title loses the 40 title points."""
        score = score_candidate(_abbey_road(title="zzzzzzzzzz"), LOCAL)

        assert score.confidence == 60
        assert "Exact title match" not in score.reasons

    def test_better_inputs_never_score_lower(self) -> None:
        """Improving one component never lowers the confidence."""
        worse = score_candidate(_abbey_road(date="1970", track_count=15), LOCAL).confidence
        year_fixed = score_candidate(_abbey_road(track_count=15), LOCAL).confidence
        both_fixed = score_candidate(_abbey_road(), LOCAL).confidence

        assert worse <= year_fixed <= both_fixed

    def test_scoring_is_deterministic(self) -> None:
        """Same inputs, same number."""
        first = score_candidate(_abbey_road(date="1970"), LOCAL)
        second = score_candidate(_abbey_road(date="1970"), LOCAL)

        assert first == second


class TestRankCandidates:
    """Test rank_candidates()."""

    def test_sorted_by_descending_confidence(self) -> None:
        """Best candidate comes first."""
        releases = [
            _abbey_road(id="far", track_count=30),
            _abbey_road(id="exact"),
            _abbey_road(id="close", date="1970"),
        ]

        ranked = rank_candidates(releases, LOCAL)

        assert [c.release.id for c in ranked] == ["exact", "close", "far"]
        assert [c.confidence for c in ranked] == [100, 93, 90]

    def test_ties_keep_catalog_order(self) -> None:
        """Equal confidence keeps the order the catalog returned."""
        releases = [_abbey_road(id="first"), _abbey_road(id="second")]

        ranked = rank_candidates(releases, LOCAL)

        assert [c.release.id for c in ranked] == ["first", "second"]

    def test_limit(self) -> None:
        """limit caps the number of candidates."""
        releases = [_abbey_road(id=f"r{i}") for i in range(8)]

        assert len(rank_candidates(releases, LOCAL, limit=5)) == 5

    def test_empty(self) -> None:
        """No releases, no candidates."""
        assert rank_candidates([], LOCAL) == []
