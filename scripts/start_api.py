import os
import sys
from pathlib import Path

# Ensure the project root is importable when executing as a script.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import uvicorn


def _read_port() -> int:
    """Read the listen port from PORT (default 8000)."""
    raw = os.environ.get("PORT", "8000")
    try:
        return int(raw)
    except ValueError as exc:  # pragma: no cover - fatal configuration
        raise SystemExit(f"PORT must be an integer, got '{raw}'") from exc


def main() -> None:
    host = os.environ.get("HOST", "0.0.0.0")
    uvicorn.run("app.main:app", host=host, port=_read_port(), proxy_headers=True)


if __name__ == "__main__":
    main()
