"""Entry point for running the API server as a module.

Allows running with: python -m chat_agent.api
"""

import os

import uvicorn


def main() -> None:
    """Run the API server with uvicorn."""
    uvicorn.run(
        "chat_agent.api.app:app",
        host=os.environ.get("API_HOST", "127.0.0.1"),
        port=int(os.environ.get("API_PORT", "8000")),
        log_config=None,
    )


if __name__ == "__main__":
    main()
