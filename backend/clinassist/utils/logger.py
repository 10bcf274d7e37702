import logging

logger = logging.getLogger("clinassist")
