import logging

logger = logging.getLogger("failrite")
logger.setLevel(logging.INFO)
