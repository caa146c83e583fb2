"""ASGI entrypoint for the BarqPix API."""

from barqpix.api.app import create_app
from barqpix.containers import build_container

app = create_app(build_container())
