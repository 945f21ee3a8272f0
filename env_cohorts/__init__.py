"""env_cohorts package initializer.

This package contains the survey pipeline used by the Shiny application:
wave harmonization, pooling, weighted cohort aggregation, caching and
plotting helpers.  See individual module docstrings for details.
"""
