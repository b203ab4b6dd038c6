"""
Application usecases: the operation handlers and the components they share.

The CLI and other callers go through the dispatcher rather than calling
handlers directly.
"""

# Import modules to make them available at package level
from . import descendant_units  # noqa: I001
from . import dispatcher  # noqa: I001
