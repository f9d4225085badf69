"""Run the brigade-store command line tool."""

from .tool.brigade_store import main

if __name__ == "__main__":
    main()
