__title__ = 'helmsman'
__license__ = 'MIT'
__version__ = "0.1.0"

from .arguments import *
from .binding import *
from .cancellation import *
from .commands import *
from .config import *
from .dispatcher import *
from .faults import *
from .filters import *
from .rendering import *
from .validation import *

VersionInfo = __import__("collections").namedtuple("VersionInfo", (
    "major",
    "minor",
    "micro",
    "releaselevel",
    "serial",
))

version_info = VersionInfo(0, 1, 0, "final", 0)

__all__ = (
    "__title__",
    "__license__",
    "__version__",
    "version_info"
)

# Load the exposed API of the parameters
__all__ += arguments.__all__  # type: ignore[attr-defined]
# Load the exposed API of the binder
__all__ += binding.__all__  # type: ignore[attr-defined]
# Load the exposed API of the cancellation primitives
__all__ += cancellation.__all__  # type: ignore[attr-defined]
# Load the exposed API of the commands and registry
__all__ += commands.__all__  # type: ignore[attr-defined]
# Load the exposed API of the runtime configuration
__all__ += config.__all__  # type: ignore[attr-defined]
# Load the exposed API of the dispatcher
__all__ += dispatcher.__all__  # type: ignore[attr-defined]
# Load the exposed API of the faults
__all__ += faults.__all__  # type: ignore[attr-defined]
# Load the exposed API of the filters
__all__ += filters.__all__  # type: ignore[attr-defined]
# Load the exposed API of the renderers
__all__ += rendering.__all__  # type: ignore[attr-defined]
# Load the exposed API of the validation rules
__all__ += validation.__all__  # type: ignore[attr-defined]
