"""telnvt: threaded line-oriented Telnet connections implemented in python."""
# pylint: disable=wildcard-import,undefined-variable
from .telopt import *           # noqa
from .decoder import *          # noqa
from .pump import *             # noqa
from .connection import *       # noqa
from .server import *           # noqa
from .accessories import get_version as __get_version

__all__ = (
    telopt.__all__ +
    decoder.__all__ +
    pump.__all__ +
    connection.__all__ +
    server.__all__
)  # noqa

__license__ = 'ISC'
__version__ = __get_version()
