"""
CRM Analytics Package.

Analytics subsystem for the CRM: turns client records (native attributes plus
user-defined custom fields) into labeled numeric series, summary statistics,
chart-ready downsampled points and human-readable insights.

Subpackages:
    - core: Settings, logging setup and collaborator protocols
    - models: Pydantic value objects and enums
    - services: Field catalog, query engine, sampler, statistics, insights
    - tests: Pytest suite

Every invocation works on a fully materialized record set and is stateless;
persistence and rendering live outside this package.
"""

__version__ = "1.0.0"
