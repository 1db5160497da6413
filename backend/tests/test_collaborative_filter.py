import math

import pytest

from ekskul_recommender.recommender.collaborative_filter import (
    CollaborativeScores,
    build_rating_index,
    collaborative_scores,
    item_based_scores,
    user_based_scores,
)
from ekskul_recommender.recommender.models import (
    QuestionRecord,
    RatingRecord,
    ResponseRecord,
    ScoringConfig,
)
from ekskul_recommender.recommender.profile_builder import build_profiles, question_category_map
from ekskul_recommender.recommender.similarity import similarity

RATINGS = [
    RatingRecord(user_id="u1", activity_id="a", rating=5),
    RatingRecord(user_id="u1", activity_id="b", rating=3),
    RatingRecord(user_id="u2", activity_id="a", rating=5),
    RatingRecord(user_id="u2", activity_id="b", rating=3),
    RatingRecord(user_id="u2", activity_id="c", rating=4),
    RatingRecord(user_id="u3", activity_id="a", rating=1),
    RatingRecord(user_id="u3", activity_id="c", rating=5),
]


@pytest.fixture
def profiles():
    return build_profiles(RATINGS, [], {})


@pytest.fixture
def rating_index():
    return build_rating_index(RATINGS)


def test_rating_index_shape(rating_index):
    assert dict(rating_index["a"]) == {"u1": 5.0, "u2": 5.0, "u3": 1.0}
    assert dict(rating_index["c"]) == {"u2": 4.0, "u3": 5.0}
    with pytest.raises(TypeError):
        rating_index["a"]["u9"] = 1


def test_user_based_only_scores_unrated_activities(profiles):
    scores = user_based_scores(profiles["u1"], profiles, ScoringConfig())

    sim_u2 = 34 / math.sqrt(34 * 50)
    sim_u3 = 5 / math.sqrt(34 * 26)
    assert set(scores) == {"c"}
    assert scores["c"] == pytest.approx(sim_u2 * 4 + sim_u3 * 5)


def test_user_based_threshold_discards_weak_neighbors(profiles):
    config = ScoringConfig(similarity_threshold=0.5)
    scores = user_based_scores(profiles["u1"], profiles, config)

    sim_u2 = 34 / math.sqrt(34 * 50)
    assert scores["c"] == pytest.approx(sim_u2 * 4)


def test_item_based_scores(profiles, rating_index):
    scores = item_based_scores(profiles["u1"], rating_index, ScoringConfig())

    sim_a_c = 25 / math.sqrt(51 * 41)
    sim_b_c = 12 / math.sqrt(18 * 41)
    assert set(scores) == {"c"}
    assert scores["c"] == pytest.approx(sim_a_c * 5 + sim_b_c * 3)


def test_user_with_only_responses_gets_user_based_scores():
    questions = [QuestionRecord(id="1", category="Olahraga")]
    ratings = [RatingRecord(user_id="u5", activity_id="a", rating=5)]
    responses = [
        ResponseRecord(user_id="u4", question_id="1", score=4),
        ResponseRecord(user_id="u5", question_id="1", score=4),
    ]
    profiles = build_profiles(ratings, responses, question_category_map(questions))
    result = collaborative_scores("u4", profiles, build_rating_index(ratings), ScoringConfig())

    expected_sim = 16 / (4 * math.sqrt(16 + 25))
    assert result.user_based["a"] == pytest.approx(expected_sim * 5)
    assert result.item_based == {}


def test_unknown_user_yields_empty_scores(profiles, rating_index):
    result = collaborative_scores("nobody", profiles, rating_index, ScoringConfig())
    assert result.is_empty()


def test_single_activity_has_no_item_based_contribution():
    ratings = [RatingRecord(user_id="u1", activity_id="a", rating=5)]
    profiles = build_profiles(ratings, [], {})
    result = collaborative_scores("u1", profiles, build_rating_index(ratings), ScoringConfig())

    assert result.item_based == {}
    assert result.user_based == {}


def test_combined_merges_sources_with_weights():
    scores = CollaborativeScores(user_based={"a": 2.0}, item_based={"a": 4.0, "b": 2.0})
    assert scores.combined(0.5, 0.5) == {"a": 3.0, "b": 1.0}
    assert scores.combined(1.0, 0.0) == {"a": 2.0, "b": 0.0}


def test_user_similarity_separates_cosine_and_pearson():
    # Cùng xu hướng nhưng dev rating cao hơn 1 điểm mỗi activity
    ratings = [
        RatingRecord(user_id="rina", activity_id="a", rating=1),
        RatingRecord(user_id="rina", activity_id="b", rating=2),
        RatingRecord(user_id="rina", activity_id="c", rating=3),
        RatingRecord(user_id="dev", activity_id="a", rating=2),
        RatingRecord(user_id="dev", activity_id="b", rating=3),
        RatingRecord(user_id="dev", activity_id="c", rating=4),
        RatingRecord(user_id="twin", activity_id="a", rating=2),
        RatingRecord(user_id="twin", activity_id="b", rating=4),
        RatingRecord(user_id="twin", activity_id="c", rating=6),
    ]
    profiles = build_profiles(ratings, [], {})
    rina = profiles["rina"].features

    # Proportional -> cả hai metrics = 1
    assert similarity(rina, profiles["twin"].features, "cosine") == pytest.approx(1.0)
    assert similarity(rina, profiles["twin"].features, "pearson") == pytest.approx(1.0)

    # Correlated nhưng không proportional -> chỉ Pearson = 1
    assert similarity(rina, profiles["dev"].features, "pearson") == pytest.approx(1.0)
    assert similarity(rina, profiles["dev"].features, "cosine") < 0.999


def test_collaborative_scores_is_deterministic(profiles, rating_index):
    first = collaborative_scores("u1", profiles, rating_index, ScoringConfig(similarity_metric="pearson"))
    second = collaborative_scores("u1", profiles, rating_index, ScoringConfig(similarity_metric="pearson"))
    assert first == second
