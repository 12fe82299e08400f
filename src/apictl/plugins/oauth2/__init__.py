"""OAuth2 authentication plugin (token attachment, client credentials and refresh grants).

See Also:
    :class:`~apictl.plugins.oauth2.plugin.OAuth2AuthPlugin`
"""

from apictl.plugins.oauth2.plugin import OAuth2AuthPlugin

__all__ = ["OAuth2AuthPlugin"]
