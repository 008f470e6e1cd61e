"""dent: convenience tooling around the docker CLI.

Provides the ``dent`` container-entry tool and the ``docker-proxy`` socket
forwarder. Both shell out to ``docker``, ``socat`` and ``sudo``.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
