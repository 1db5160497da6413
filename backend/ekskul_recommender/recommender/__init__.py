"""
Core recommendation-scoring package.

Cấu trúc:
- models.py: records, FeatureKey, ScoringConfig
- similarity.py: cosine / pearson trên sparse vectors
- profile_builder.py: records -> sparse profiles
- collaborative_filter.py: user-based + item-based CF
- score_aggregator.py: kết hợp signals thành ranked list
- reference_cache.py: cache TTL cho activities/questions
"""
