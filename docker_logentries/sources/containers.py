"""Container discovery shared by the log and stats sources.

``watch_containers`` calls a handler once for every running container that
passes the configured filters, then keeps calling it for containers started
later.  Each handler runs in its own daemon thread.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Callable
from typing import Any

from docker.errors import DockerException, NotFound

from docker_logentries.config import ConfigurationError, ShipperSettings
from docker_logentries.sources._threaded import SourceClosed, spawn

logger = logging.getLogger(__name__)

ContainerHandler = Callable[[Any, str, str], None]


class ContainerFilter:
    """Select containers by image and name patterns.

    A container is accepted when it matches every configured ``match_*``
    pattern and none of the ``skip_*`` patterns.  Patterns use search
    semantics.
    """

    def __init__(
        self,
        *,
        match_by_image: str | None = None,
        match_by_name: str | None = None,
        skip_by_image: str | None = None,
        skip_by_name: str | None = None,
    ) -> None:
        self._match_image = self._compile(match_by_image)
        self._match_name = self._compile(match_by_name)
        self._skip_image = self._compile(skip_by_image)
        self._skip_name = self._compile(skip_by_name)

    @classmethod
    def from_settings(cls, settings: ShipperSettings) -> ContainerFilter:
        return cls(
            match_by_image=settings.match_by_image,
            match_by_name=settings.match_by_name,
            skip_by_image=settings.skip_by_image,
            skip_by_name=settings.skip_by_name,
        )

    @staticmethod
    def _compile(pattern: str | None) -> re.Pattern[str] | None:
        if not pattern:
            return None
        try:
            return re.compile(pattern)
        except re.error as exc:
            raise ConfigurationError(f"Invalid container filter {pattern!r}: {exc}") from exc

    def accepts(self, name: str, image: str) -> bool:
        if self._match_image is not None and not self._match_image.search(image):
            return False
        if self._match_name is not None and not self._match_name.search(name):
            return False
        if self._skip_image is not None and self._skip_image.search(image):
            return False
        if self._skip_name is not None and self._skip_name.search(name):
            return False
        return True


def describe(container: Any) -> tuple[str, str]:
    """Return ``(name, image)`` for a docker-py container object."""
    name = (container.name or container.id[:12]).lstrip("/")
    image = container.attrs.get("Config", {}).get("Image", "")
    if not image:
        tags = getattr(container.image, "tags", None) or []
        image = tags[0] if tags else ""
    return name, image


def watch_containers(
    client: Any,
    container_filter: ContainerFilter,
    handler: ContainerHandler,
    stopped: threading.Event,
    *,
    kind: str,
) -> None:
    """Run *handler* for every accepted container, current and future.

    Blocks until the daemon's event stream ends or *stopped* is set.
    """
    active: set[str] = set()
    lock = threading.Lock()

    def run_handler(container: Any, name: str, image: str) -> None:
        try:
            handler(container, name, image)
        except SourceClosed:
            pass
        except DockerException as exc:
            logger.info("%s stream for %s ended: %s", kind, name, exc)
        finally:
            with lock:
                active.discard(container.id)

    def attach(container: Any) -> None:
        name, image = describe(container)
        if not container_filter.accepts(name, image):
            logger.debug("Skipping container %s (%s)", name, image)
            return
        with lock:
            if container.id in active:
                return
            active.add(container.id)
        logger.debug("Following %s for %s (%s)", kind, name, image)
        spawn(run_handler, container, name, image, name=f"{kind}-{name}")

    events = client.events(decode=True, filters={"type": "container", "event": "start"})
    for container in client.containers.list():
        attach(container)

    for event in events:
        if stopped.is_set():
            return
        container_id = event.get("id") or event.get("Actor", {}).get("ID")
        if not container_id:
            continue
        try:
            attach(client.containers.get(container_id))
        except NotFound:
            logger.debug("Container %s vanished before it could be followed", container_id)
