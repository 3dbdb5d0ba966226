"""Allow ``python -m finddocs.cli`` execution."""

from finddocs.cli.main import main

main()
