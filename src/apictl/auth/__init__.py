"""Plugin-based authentication for apictl.

The main entry points are:

- :class:`AuthPlugin` -- abstract base class for a credential type.
- :class:`AuthManager` -- maps type tags to plugins and attaches
  credentials to requests; :func:`create_default_manager` returns one
  pre-loaded with the built-in plugins.
- :class:`CredentialStore` -- per-API, multi-profile credential file.
- :func:`resolve_credential` -- environment-first credential selection
  with OAuth2 refresh.

Typical usage::

    from apictl.auth import CredentialStore, TokenRefresher, create_default_manager, resolve_credential

    manager = create_default_manager()
    store = CredentialStore("stripe")
    active = resolve_credential("stripe", adapter.auth, manager, store, TokenRefresher(store, manager))
"""

from apictl.auth.base import AuthPlugin
from apictl.auth.credential_store import CredentialStore
from apictl.auth.lifecycle import ActiveCredential, TokenRefresher, needs_refresh, resolve_credential
from apictl.auth.manager import AuthManager, create_default_manager

__all__ = [
    "ActiveCredential",
    "AuthManager",
    "AuthPlugin",
    "CredentialStore",
    "TokenRefresher",
    "create_default_manager",
    "needs_refresh",
    "resolve_credential",
]
