"""Allow running as python -m context_pruner."""

from .cli import main

main()
