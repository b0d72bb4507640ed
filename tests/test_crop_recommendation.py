import pytest

from app.domain.crop_recommendation import CropRecommendationScorer
from app.domain.crops import CATEGORIES, CROP_CATALOG, CropSpec, crops_in_category, find_crop, require_crop
from app.domain.exceptions import NotFoundError
from app.domain.farm_profile import NOT_PROVIDED, FarmProfile
from app.domain.ph import OptimalRange


@pytest.fixture()
def scorer():
    return CropRecommendationScorer()


def profile(location=None):
    return FarmProfile(user_id=1, farm_location=location)


class TestSeasonalScore:
    def test_in_season(self, scorer):
        assert scorer.seasonal_score(find_crop("rice"), 5) == 100.0

    def test_adjacent_month(self, scorer):
        # wheat is in season in March, adjacent to April
        assert scorer.seasonal_score(find_crop("wheat"), 4) == 60.0

    def test_off_season(self, scorer):
        assert scorer.seasonal_score(find_crop("mango"), 1) == 30.0

    def test_december_wraps_to_january(self, scorer):
        crop = CropSpec("turnip", "Turnip", 6.0, 7.0, "vegetables")
        # turnip only appears in January
        assert scorer.seasonal_score(crop, 12) == 60.0
        assert scorer.seasonal_score(crop, 2) == 60.0


class TestLocationScore:
    def test_exact_region(self, scorer):
        assert scorer.location_score(find_crop("rice"), profile("Punjab")) == 100.0

    def test_state_level_match(self, scorer):
        assert scorer.location_score(find_crop("rice"), profile("Punjab, India")) == 70.0

    def test_known_location_without_match(self, scorer):
        assert scorer.location_score(find_crop("apple"), profile("Punjab")) == 40.0

    @pytest.mark.parametrize("location", [None, "", "   ", NOT_PROVIDED])
    def test_unknown_location(self, scorer, location):
        assert scorer.location_score(find_crop("rice"), profile(location)) == 50.0

    def test_case_insensitive(self, scorer):
        assert scorer.location_score(find_crop("wheat"), profile("  HARYANA ")) == 100.0


class TestWaterScore:
    def test_ideal_midpoint(self, scorer):
        assert scorer.water_score(find_crop("cotton")) == 100.0

    def test_deviation_penalty(self, scorer):
        # potato midpoint 5.5
        assert scorer.water_score(find_crop("potato")) == pytest.approx(90.0)

    def test_floor(self, scorer):
        crop = CropSpec("odd", "Odd", 13.0, 14.0, "fruits")
        assert scorer.water_score(crop) == 30.0


class TestRecommend:
    def test_composite_weights(self, scorer):
        scored = scorer.score_crop(find_crop("rice"), profile("Punjab"), 5)
        # 3 x 100 + 2 x 100 + 1 x 95
        assert scored.score == pytest.approx(595.0)
        assert scorer.score(find_crop("rice"), profile("Punjab"), 5) == pytest.approx(595.0)

    def test_ranking_is_descending_and_stable(self, scorer):
        ranked = scorer.recommend(profile("Punjab"), CROP_CATALOG, 5, limit=4)

        assert [item.crop.value for item in ranked] == ["maize", "cotton", "sugarcane", "rice"]
        scores = [item.score for item in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_limit(self, scorer):
        assert len(scorer.recommend(profile(), CROP_CATALOG, 1)) == 10
        assert len(scorer.recommend(profile(), CROP_CATALOG, 1, limit=3)) == 3
        assert scorer.recommend(profile(), CROP_CATALOG, 1, limit=0) == []

    def test_missing_profile_or_catalog_gives_empty_list(self, scorer):
        assert scorer.recommend(None, CROP_CATALOG, 5) == []
        assert scorer.recommend(profile(), [], 5) == []
        assert scorer.recommend(profile(), None, 5) == []

    def test_to_dict_includes_scores(self, scorer):
        item = scorer.recommend(profile("Punjab"), CROP_CATALOG, 5, limit=1)[0]
        payload = item.to_dict()
        assert payload["value"] == "maize"
        assert payload["recommendation_score"] == pytest.approx(600.0)
        assert payload["seasonal_score"] == 100.0

    def test_custom_tables(self):
        scorer = CropRecommendationScorer(seasonal_crops={6: frozenset({"apple"})}, regional_crops={})
        ranked = scorer.recommend(profile(), CROP_CATALOG, 6, limit=1)
        assert ranked[0].crop.value == "apple"


class TestCatalog:
    def test_find_crop_is_case_insensitive(self):
        assert find_crop(" Rice ").label == "Rice (Dhaan)"
        assert find_crop("unknown") is None
        assert find_crop(None) is None

    def test_require_crop_raises_not_found(self):
        with pytest.raises(NotFoundError):
            require_crop("dragonfruit")

    def test_optimal_range(self):
        assert find_crop("potato").optimal_range == OptimalRange(5.0, 6.0)

    def test_categories_filter(self):
        cereals = crops_in_category("cereals")
        assert {crop.value for crop in cereals} == {"rice", "wheat", "maize"}
        assert len(crops_in_category("all")) == len(CROP_CATALOG)
        assert len(crops_in_category(None)) == len(CROP_CATALOG)

    def test_every_crop_has_known_category_and_valid_band(self):
        for crop in CROP_CATALOG:
            assert crop.category in CATEGORIES
            assert crop.min_ph <= crop.max_ph
