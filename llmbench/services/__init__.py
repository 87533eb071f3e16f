"""Services for llmbench.

- ollama.py: inference server client
- catalog.py: static model catalog and RAM tiers
- recommender.py: tier matching and hardware-aware ranking
- benchmark/: execution engine, aggregation, reports and comparison
- export.py: report persistence and rendering
"""
