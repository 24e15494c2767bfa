"""Download a state blob only when its modification token moved."""

import logging
from typing import Protocol

from statewarden.models import FetchResult, StateLocation

logger = logging.getLogger(__name__)


class ObjectStore(Protocol):
    def probe(self, location: StateLocation) -> str: ...

    def download(self, location: StateLocation) -> bytes: ...


def fetch_if_changed(store: ObjectStore, location: StateLocation, previous_token: str) -> FetchResult:
    """Probe ``location`` and download it only if its token differs from ``previous_token``.

    Passing an empty ``previous_token`` forces a download whenever the
    store reports any token at all.

    Raises:
        TransientFetchError: the probe or the download failed.
    """
    token = store.probe(location)
    if token == previous_token:
        return FetchResult(changed=False, token=token)

    logger.debug("Object %s changed (%r -> %r), downloading", location, previous_token, token)
    content = store.download(location)
    return FetchResult(changed=True, token=token, content=content)
