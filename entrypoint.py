"""Backend entrypoint: starts uvicorn on the port given by FUNDFOLIO_PORT."""
import os
import uvicorn

# Import the app object directly; uvicorn's string-based import does not
# survive frozen bundles.
from fundfolio.main import app


def main() -> None:
    port = int(os.environ.get("FUNDFOLIO_PORT", "8001"))
    uvicorn.run(app, host="127.0.0.1", port=port)


if __name__ == "__main__":
    main()
