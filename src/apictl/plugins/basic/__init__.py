"""HTTP Basic authentication plugin.

See Also:
    :class:`~apictl.plugins.basic.plugin.BasicAuthPlugin`
"""

from apictl.plugins.basic.plugin import BasicAuthPlugin

__all__ = ["BasicAuthPlugin"]
