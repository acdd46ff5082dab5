"""Run the gateway with Uvicorn on ``0.0.0.0:$PORT``."""

import uvicorn

from .main import app, config


def main() -> None:
    uvicorn.run(app, host="0.0.0.0", port=config.port)


if __name__ == "__main__":
    main()
