"""Device traffic logging module.

Records every command, response and connection event exchanged with the
device for debugging and troubleshooting.
"""

from mddm.logging.communication_logger import CommunicationLogger

__all__ = ['CommunicationLogger']
