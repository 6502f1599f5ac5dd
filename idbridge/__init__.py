from idbridge.utils.logging import Logger, get_logger
from idbridge.utils.terminal import supports_utf8
from idbridge.utils.version import get_pyproject_version

__version__ = get_pyproject_version()


if supports_utf8():
    IDBRIDGE_HEADER = f"""
╔═══════════════════════════════════════════════════════════════════════════════╗
║                               I D B R I D G E                                 ║
╠═══════════════════════════════════════════════════════════════════════════════╣
║  Version: {__version__:<68}║
╚═══════════════════════════════════════════════════════════════════════════════╝
    """.strip()
else:
    IDBRIDGE_HEADER = f"""
+-------------------------------------------------------------------------------+
|                               I D B R I D G E                                 |
+-------------------------------------------------------------------------------+
|  Version: {__version__:<68}|
+-------------------------------------------------------------------------------+
    """.strip()

log: Logger = get_logger()
