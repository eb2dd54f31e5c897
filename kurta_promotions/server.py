"""
Process entry point: serves the promotions API with uvicorn.
"""
import os

import uvicorn


def read_port(default: int = 8000) -> int:
    """PORT from the environment (set by the platform), validated."""
    value = os.environ.get("PORT", str(default))
    try:
        port = int(value)
    except ValueError as exc:
        raise SystemExit(f"Invalid PORT '{value}': {exc}") from exc
    if not 0 < port < 65536:
        raise SystemExit(f"PORT out of range: {port}")
    return port


def main() -> None:
    uvicorn.run(
        "kurta_promotions.main:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=read_port(),
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()
