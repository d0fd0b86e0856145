"""Allow ``python -m bankidkit``."""

from bankidkit.cli.main import main

main()
