"""
PromptStudio - Prompt flow execution backend

Runs visual prompt flows (typed node graphs) against pluggable language-model
providers, with {{variable}} interpolation threaded through every node.
"""

import logging
from typing import Optional

__version__ = '1.0.0'


def configure_logging(level: Optional[str] = None):
    """
    Configure root logging for processes embedding the engine.

    Args:
        level: Log level name (defaults to Config.LOG_LEVEL)
    """
    from promptstudio.config import get_config

    logging.basicConfig(
        level=(level or get_config().LOG_LEVEL).upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
