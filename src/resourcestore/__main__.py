"""Allow ``python -m resourcestore``."""

from .cli import main

main()
