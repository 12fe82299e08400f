"""Built-in CLI sub-commands for apictl.

* :mod:`~apictl.commands.auth` -- log in, log out and manage credential
  profiles per API.
* :mod:`~apictl.commands.apis` -- list installed APIs and the commands
  compiled from their documents.

Each module exports a :class:`typer.Typer` sub-application registered on
the root app by :func:`apictl.app.main`.
"""
