from __future__ import annotations

import logging

import uvicorn
from dotenv import load_dotenv

from chatrelay.app.api.app import create_app
from chatrelay.core.config import load_app_config

load_dotenv()

config = load_app_config()
logging.basicConfig(
    level=config.log_level,
    format="%(asctime)s | %(levelname)-8s | %(name)-28s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

app = create_app(config)


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000)
