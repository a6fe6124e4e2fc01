"""ASGI entrypoint for the Hall of Shame API."""

from hall_of_shame.api.app import create_app
from hall_of_shame.containers import build_container

app = create_app(build_container())
