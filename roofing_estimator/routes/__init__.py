"""
Flask blueprints for the roofing estimator API.

Each module exposes one blueprint; ``roofing_estimator.app`` registers them
with their URL prefixes.
"""
