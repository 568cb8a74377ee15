"""Allow running as python -m guided_exercise."""

from .main import main

if __name__ == "__main__":
    main()
