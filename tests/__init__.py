"""traitbank-dump test suite.

- unit/: one module per library module (query, throttle, graph client,
  chunks, paginator, targets, dumper, config, storage, logging, CLI)
- integration/: full dumps through the HTTP client against a mocked
  Cypher service, including resume after a failed run
"""
