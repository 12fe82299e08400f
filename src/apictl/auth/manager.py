"""Auth manager -- registry and dispatcher for auth plugins.

:class:`AuthManager` maps a credential type tag to an
:class:`~apictl.auth.base.AuthPlugin` and implements step 5 of the
request pipeline in :meth:`AuthManager.apply`:

1. An adapter ``auth`` section of type ``custom`` delegates entirely to
   its :class:`~apictl.adapters.config.AuthApplier`.
2. Any other adapter ``auth`` section selects the plugin for its type.
3. With no ``auth`` section at all, the plugin is chosen by the
   credential's own type tag (the generic rule).

For most use cases, call :func:`create_default_manager` to get a manager
pre-loaded with every built-in plugin.
"""

from __future__ import annotations

from typing import Optional

from apictl.adapters.config import AuthSection
from apictl.adapters.context import AdapterContext, AdapterRequest
from apictl.auth.base import AuthPlugin
from apictl.exceptions import AuthError
from apictl.models import AuthProfile


class AuthManager:
    """Registry and dispatcher for authentication plugins.

    Example::

        from apictl.auth import AuthManager
        from apictl.plugins.bearer import BearerAuthPlugin

        manager = AuthManager()
        manager.register(BearerAuthPlugin())
        manager.apply(request, profile, adapter.auth, ctx)
    """

    def __init__(self) -> None:
        self._plugins: dict[str, AuthPlugin] = {}

    def register(self, plugin: AuthPlugin) -> None:
        """Register an auth plugin, replacing any plugin for the same type."""
        self._plugins[plugin.auth_type] = plugin

    def get_plugin(self, auth_type: str) -> AuthPlugin:
        """Retrieve a registered plugin by its type tag.

        Raises:
            AuthError: If no plugin is registered for *auth_type*.
        """
        plugin = self._plugins.get(auth_type)
        if plugin is None:
            available = ", ".join(sorted(self._plugins)) or "(none)"
            raise AuthError(
                f"No auth plugin registered for type '{auth_type}'. "
                f"Available types: {available}"
            )
        return plugin

    def apply(
        self,
        request: AdapterRequest,
        profile: Optional[AuthProfile],
        auth: Optional[AuthSection],
        ctx: AdapterContext,
    ) -> None:
        """Attach *profile* to *request* according to the adapter's *auth* section.

        A ``custom`` applier is always called, even without a stored
        profile, since it may read everything it needs from *ctx*. Otherwise
        a missing profile leaves the request unauthenticated and the API's
        own 401 is reported.
        """
        if auth is not None and auth.type == "custom":
            auth.applier.apply(request, profile, ctx)  # type: ignore[union-attr]
            return
        if profile is None:
            return
        plugin = self.get_plugin(auth.type if auth is not None else profile.type)
        plugin.apply(request, profile, auth)

    def profile_from_secret(self, secret: str, auth: Optional[AuthSection]) -> AuthProfile:
        """Build a profile from one secret value for the adapter's auth type.

        Without an ``auth`` section, or for ``custom`` auth, the secret is
        treated as a bearer token.
        """
        auth_type = auth.type if auth is not None and auth.type != "custom" else "bearer"
        return self.get_plugin(auth_type).from_secret(secret, auth)

    def list_types(self) -> list[str]:
        """Return the type tags of all registered plugins, sorted."""
        return sorted(self._plugins.keys())


def create_default_manager(oauth2_plugin: Optional[AuthPlugin] = None) -> AuthManager:
    """Create an :class:`AuthManager` pre-loaded with all built-in plugins.

    Registered types: ``apiKey``, ``bearer``, ``basic`` and ``oauth2``.

    Args:
        oauth2_plugin: Replacement ``oauth2`` plugin, e.g. one constructed
            with a mock transport and a fixed clock.
    """
    from apictl.plugins.api_key import APIKeyAuthPlugin
    from apictl.plugins.basic import BasicAuthPlugin
    from apictl.plugins.bearer import BearerAuthPlugin
    from apictl.plugins.oauth2 import OAuth2AuthPlugin

    manager = AuthManager()
    manager.register(APIKeyAuthPlugin())
    manager.register(BearerAuthPlugin())
    manager.register(BasicAuthPlugin())
    manager.register(oauth2_plugin or OAuth2AuthPlugin())
    return manager
