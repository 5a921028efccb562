"""Making sure node images are present locally."""

from __future__ import annotations

import logging
import time

from ..nodes import Cmd, RunError

log = logging.getLogger(__name__)

_DIGEST_MARKER = "@sha256:"


def sanitize_image(image: str) -> tuple[str, str]:
    """Return a human readable name and the pullable name of ``image``."""
    if _DIGEST_MARKER in image:
        return image.split(_DIGEST_MARKER)[0], image
    return image, image


def pull_if_not_present(image: str, retries: int, binary_name: str) -> bool:
    """Pull ``image`` unless present; return whether a pull was attempted."""
    try:
        Cmd(binary_name, ["inspect", "--type=image", image]).run()
    except RunError:
        pull(image, retries, binary_name)
        return True
    log.debug("Image: %s present locally", image)
    return False


def pull(image: str, retries: int, binary_name: str) -> None:
    """Pull ``image``, retrying up to ``retries`` times with growing pauses."""
    log.debug("Pulling image: %s ...", image)
    try:
        Cmd(binary_name, ["pull", image]).run()
        return
    except RunError as err:
        last_error = err
    for attempt in range(retries):
        time.sleep(attempt + 1)
        log.debug("Trying again to pull image: %r ... %s", image, last_error)
        try:
            Cmd(binary_name, ["pull", image]).run()
            return
        except RunError as err:
            last_error = err
    last_error.add_note(f"failed to pull image {image!r}")
    raise last_error