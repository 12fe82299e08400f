"""Built-in authentication plugins, one package per credential type.

* :class:`APIKeyAuthPlugin` -- ``apiKey``
* :class:`BearerAuthPlugin` -- ``bearer``
* :class:`BasicAuthPlugin` -- ``basic``
* :class:`OAuth2AuthPlugin` -- ``oauth2``

They are registered with an :class:`~apictl.auth.manager.AuthManager` by
:func:`~apictl.auth.manager.create_default_manager`.
"""

from apictl.plugins.api_key import APIKeyAuthPlugin
from apictl.plugins.basic import BasicAuthPlugin
from apictl.plugins.bearer import BearerAuthPlugin
from apictl.plugins.oauth2 import OAuth2AuthPlugin

__all__ = ["APIKeyAuthPlugin", "BasicAuthPlugin", "BearerAuthPlugin", "OAuth2AuthPlugin"]
