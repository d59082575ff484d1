"""
Test Suite for Catchment

Unit and integration tests plus shared fixtures for the population coverage
pipeline.

Test Categories:
- test_normalizer / test_unifier / test_apportioner / test_aggregator:
  the four core steps
- test_coverage: the end-to-end CoverageService pipeline
- test_models / test_exceptions: records, ORM models, error reporting
- test_isochrones / test_census / test_locations: data collaborators
- test_store / test_maps: persistence and map output
- conftest.py: shared fixtures and test configuration

Running Tests:
    pytest                          # Run all tests
    pytest -m core                  # Only the apportionment core
    python scripts/run_tests.py     # With coverage and JUnit reports

Author: Catchment Project
License: AGPL-3.0
"""
