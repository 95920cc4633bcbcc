"""Allow ``python -m plancraft``."""

from plancraft.cli import main

main()
