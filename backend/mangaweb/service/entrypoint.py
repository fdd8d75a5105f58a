from __future__ import annotations

import os


def main() -> None:
    import uvicorn  # type: ignore

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "5001"))
    uvicorn.run("mangaweb.service.main:app", host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
