"""Application services: the planner store and the pure calculators."""
