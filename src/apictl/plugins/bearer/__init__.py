"""Bearer token authentication plugin.

See Also:
    :class:`~apictl.plugins.bearer.plugin.BearerAuthPlugin`
"""

from apictl.plugins.bearer.plugin import BearerAuthPlugin

__all__ = ["BearerAuthPlugin"]
