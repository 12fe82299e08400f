"""Numeric process exit codes surfaced to shells and scripts.

Each constant maps to one failure class and is referenced by the
corresponding :class:`~apictl.exceptions.ApictlError` subclass. Scripts can
branch on the exit status without parsing stderr.

Example::

    $ apictl stripe customers get --id cus_missing
    $ echo $?
    5   # EXIT_NOT_FOUND
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERAL_ERROR = 1
"""An unclassified error occurred, including unmapped API errors."""

EXIT_USAGE_ERROR = 2
"""The command was invoked with unknown commands or missing required parameters."""

EXIT_NETWORK_ERROR = 3
"""DNS failure, refused connection, TLS failure or timeout."""

EXIT_AUTH_ERROR = 4
"""No usable credential, or the API rejected the credential."""

EXIT_NOT_FOUND = 5
"""The requested resource (or API) was not found."""

EXIT_SPEC_ERROR = 6
"""The OpenAPI document could not be parsed or failed structural checks."""

EXIT_CONFIG_ERROR = 64
"""Configuration is missing or unusable (for example, no base URL)."""

EXIT_IO_ERROR = 74
"""Filesystem permission or space errors while reading or writing state."""
