from typing import Optional

from ..core.actions import Action, AlertAction
from ..core.base import Executor
from ..core.context import ServiceContext
from ..logger import logger
from .formatting import render_alert


class LoggerExecutor(Executor):
    __component_name__ = "logger"

    def __init__(self, context: Optional[ServiceContext] = None, render: bool = False):
        super().__init__()
        self.render = render

    async def execute(self, action: Action):
        if self.render and isinstance(action, AlertAction):
            text = render_alert(action.token, action.transaction, action.decision, action.market_cap)
            logger.info(f"Alert for chat {action.token.channel_id}:\n{text}")
            return
        logger.info(f"Executing action: {action}")
