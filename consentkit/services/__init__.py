"""
consentkit Services

- config/ - Fetch, validate and cache the consent configuration
- network/ - HTTP client and retry with exponential backoff
- delivery/ - At-least-once delivery of consent events
- policy/ - Banner decision and category resolution
"""
