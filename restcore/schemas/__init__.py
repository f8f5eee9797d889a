"""
restcore schema definitions

Instances of any resource share the ``Instance`` schema, which allows
arbitrary extra properties besides the mandatory string ``id``. Every
collection response uses the ``Envelope`` schema, every error response
uses the ``APIError`` schema.

This package also contains the ``config`` module, but it's not
exported by default, since it's currently only used internally.
"""

from .errors import *
from .extra import *
from .resources import *
