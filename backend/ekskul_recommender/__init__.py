"""
Ekstrakurikuler recommender backend.
"""
