"""Allow `python -m daowiz`."""

from .cli import main

main()
