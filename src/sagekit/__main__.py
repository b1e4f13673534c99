"""CLI entry point for sagekit.

Allows running the CLI via:
    python -m sagekit status my-training-job
"""

from .cli import main

if __name__ == "__main__":
    main()
