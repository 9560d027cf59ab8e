"""Allow ``python -m actors.proxy``."""

from actors.proxy.main import main

main()
