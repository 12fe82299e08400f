"""API key authentication plugin (header or query parameter).

See Also:
    :class:`~apictl.plugins.api_key.plugin.APIKeyAuthPlugin`
"""

from apictl.plugins.api_key.plugin import APIKeyAuthPlugin

__all__ = ["APIKeyAuthPlugin"]
