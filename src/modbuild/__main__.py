"""Allow running modbuild as `python -m modbuild`."""

from modbuild.cli import main

if __name__ == "__main__":
    main()
