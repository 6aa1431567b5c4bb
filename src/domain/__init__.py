"""
Domain layer for college mail triage.

This layer contains:
- Data models (email input, classification and triage results)
- Rule tables and the ordered classifier pipeline
- Triage pipeline and labeled-data evaluation
"""
