"""ASGI entrypoint for the photo worker."""

from photo_worker.api.app import create_app
from photo_worker.containers import build_container

app = create_app(build_container())
