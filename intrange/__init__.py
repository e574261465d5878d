from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _version

from intrange.ir import check_ir, parse_ir
from intrange.ranges import Interval, RangeAnalysis
from intrange.settings import Settings

__version__: str
try:
    __version__ = _version(__name__)
except PackageNotFoundError:
    from intrange.version import version

    __version__ = version
