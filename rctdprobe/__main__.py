"""
Entry point for rctdprobe.

    python -m rctdprobe run --method rctd --mode full
"""

import warnings

# Suppress warnings to keep the printed tables readable
warnings.filterwarnings("ignore", category=FutureWarning)

from .cli import main  # noqa: E402

if __name__ == "__main__":
    main()
