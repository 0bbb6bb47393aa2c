import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import uvicorn

from authcore.config import load_config


def main() -> None:
    cfg = load_config().validate()
    uvicorn.run("authcore.api.server:app", host=cfg.API_HOST, port=int(cfg.API_PORT), reload=False)


if __name__ == "__main__":
    main()
