"""dent: enter a docker container, creating or starting it first.

Example:
    >>> from dent.enter import EnterOptions, enter
    >>> code = enter(EnterOptions(target="debian:stable-slim", command=["uname", "-a"]))
"""

from .lib import (
    DEFAULT_SHELL_COMMAND,
    EnterAction,
    EnterOptions,
    EnterPlan,
    HostUser,
    UserImage,
    build_images,
    build_user_image,
    container_name_for,
    default_command,
    enter,
    list_managed,
    plan_enter,
    remove,
    sanitize_name,
    split_image,
    user_image_for,
)

__all__ = [
    # Naming
    "split_image",
    "sanitize_name",
    "container_name_for",
    "user_image_for",
    # User images
    "HostUser",
    "UserImage",
    "build_user_image",
    "build_images",
    # Enter
    "DEFAULT_SHELL_COMMAND",
    "EnterAction",
    "EnterOptions",
    "EnterPlan",
    "default_command",
    "plan_enter",
    "enter",
    # Housekeeping
    "list_managed",
    "remove",
]
