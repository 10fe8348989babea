from datetime import datetime
from importlib.metadata import version, PackageNotFoundError


__author__ = ("bioglue developers",)
__copyright__ = "Copyright (c) 2020-{}, bioglue developers".format(datetime.now().year)
__email__ = "bioglue-dev@users.noreply.github.com"
__license__ = "BSD"
__status__ = "Development"

__version__ = "0.0.0"
try:
    __version__ = version("bioglue")
except PackageNotFoundError:
    # package is not installed
    pass
