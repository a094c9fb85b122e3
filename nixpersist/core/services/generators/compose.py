"""
Compose renderer — container autostart document.

Produces a compose file for one privileged service that mounts the
host root at ``/mnt`` and runs the payload through ``chroot /mnt``.
``restart: "always"`` makes the engine start it again after reboots.

The text is built line by line so output is byte-stable; PyYAML is then
used to confirm the document parses back to the intended values, which
rejects payloads or images that would change the YAML structure.
"""

from __future__ import annotations

import re

import yaml

from nixpersist.core.errors import ParamValidationError
from nixpersist.core.models.fragment import Fragment
from nixpersist.core.models.params import ComposeParams
from nixpersist.core.services.generators.validation import escape_literal, require, single_line

MECHANISM = "docker-compose"

COMPOSE_VERSION = "3.9"
HOST_MOUNT = "/mnt"

_SERVICE_NAME = re.compile(r"^[A-Za-z0-9_-]+$")


def validate(params: ComposeParams) -> tuple[str, str, str]:
    """Return (service_name, image, payload) stripped, or raise."""
    name = require(MECHANISM, "service_name", params.service_name)
    if not _SERVICE_NAME.match(name):
        raise ParamValidationError(
            MECHANISM,
            f"service_name {name!r} must contain only letters, numbers, dashes, or underscores",
        )

    image = require(MECHANISM, "image", params.image)
    if any(c.isspace() for c in image):
        raise ParamValidationError(MECHANISM, f"image {image!r} must not contain whitespace")

    payload = require(MECHANISM, "payload", single_line(MECHANISM, "payload", params.payload))
    return name, image, payload


def render(params: ComposeParams) -> Fragment:
    """Render the compose document."""
    name, image, payload = validate(params)
    command = f"chroot {HOST_MOUNT} {payload}"

    lines = [
        f'version: "{COMPOSE_VERSION}"',
        "services:",
        f"  {name}:",
        f"    container_name: {name}",
        f"    image: {image}",
        "    privileged: true",
        '    pid: "host"',
        '    network_mode: "host"',
        "    volumes:",
        f'      - "/:{HOST_MOUNT}"',
        "    command:",
        "      - /bin/sh",
        "      - -c",
        f'      - "{escape_literal(command)}"',
        '    restart: "always"',
    ]
    text = "\n".join(lines) + "\n"

    _check_structure(text, name, image, command)
    return Fragment(mechanism=MECHANISM, text=text)


def _check_structure(text: str, name: str, image: str, command: str) -> None:
    """Parse the document back and make sure every value survived intact."""
    try:
        doc = yaml.safe_load(text)
        service = doc["services"][name]
        ok = (
            str(service["image"]) == image
            and service["command"] == ["/bin/sh", "-c", command]
            and service["privileged"] is True
        )
    except (yaml.YAMLError, KeyError, TypeError) as e:
        raise ParamValidationError(MECHANISM, f"rendered compose file is not valid YAML: {e}") from e

    if not ok:
        raise ParamValidationError(
            MECHANISM, "image or payload contains characters that change the YAML structure",
        )
