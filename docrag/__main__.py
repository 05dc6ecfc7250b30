"""Allow ``python -m docrag``."""

from docrag.cli.ingest import main

main()
