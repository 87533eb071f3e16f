"""llmbench - benchmark locally-hosted LLM inference servers.

Module Structure:
- cli.py: command-line entry point
- config.py: settings and YAML configuration
- core/: exceptions
- system/: host resource probing
- services/: server client, model catalog, recommendation, benchmarking
"""

__version__ = "1.0.0"
