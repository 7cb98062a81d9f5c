"""
Business logic for the estimator.

The pure calculation modules (geometry, formula, quick_pricing, detailed_engine,
pricing_tiers, money_utils) have no database access. The *_service modules and
providers persist and load records through the models.
"""
