"""appsub HTTP API layer.

This package provides the Falcon Asynchronous Server Gateway Interface
(ASGI) application exposing probes and the repository-change webhook.

Usage
-----
Create the application::

    from appsub.api import create_app

    app = create_app()              # probes only
    app = create_app(dependencies)  # probes and webhook endpoint

"""

from appsub.api.app import AppDependencies, create_app

__all__ = ["AppDependencies", "create_app"]
