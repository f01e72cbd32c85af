'''
CRM Analytics Test Suite

Test Modules:
-------------
- test_statistics.py: mean, population std dev, median, CV, regression, correlation
- test_field_catalog.py: native + custom field listing, accessor table
- test_sampling.py: LTTB point counts, endpoint preservation, metadata
- test_query_engine.py: filters, record cap, grouped/individual/aggregate series
- test_insights.py: trend, anomaly, volatility, correlation, summary, ordering
- test_indicators.py: MA / EMA / RSI, trend line, series arithmetic
- test_analytics.py: end-to-end pipeline and settings
- test_models.py: series frame view, statistics properties

Running Tests:
--------------
    pip install -e ".[test]"
    pytest crm_analytics/tests/ -v
'''

__all__ = []
