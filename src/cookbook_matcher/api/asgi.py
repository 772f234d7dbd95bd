"""ASGI entrypoint for the cookbook matcher API."""

from cookbook_matcher.api.app import create_app
from cookbook_matcher.containers import build_container

app = create_app(build_container())
