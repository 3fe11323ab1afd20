from decimal import Decimal
from typing import List, Optional

from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup, LinkPreviewOptions
from telegram.error import BadRequest, Forbidden, TelegramError

from ..core.actions import Action, AlertAction
from ..core.base import Executor
from ..core.context import ServiceContext
from ..core.models import CustomButton, DispatchResult, Direction, GateDecision, TrackedToken, Transaction
from ..logger import logger
from .formatting import render_alert


def build_keyboard(buttons: List[CustomButton]) -> Optional[InlineKeyboardMarkup]:
    """One row of URL buttons, or None without buttons"""
    if not buttons:
        return None
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton(text=button.text, url=button.url) for button in buttons]]
    )


class TelegramAlertExecutor(Executor):
    """
    Sends swap alerts to each tracked token's Telegram chat.

    A successful send marks the transaction `alert_sent`. An unreachable
    chat (bot removed, chat gone) is logged as a warning and not retried.
    """

    __component_name__ = "telegram"

    def __init__(
        self,
        bot_token: Optional[str] = None,
        context: Optional[ServiceContext] = None,
        send_timeout: float = 10.0,
        bot: Optional[Bot] = None,
    ):
        """
        Args:
            bot_token: Telegram Bot Token
            context: Shared services; alert_sent is tracked in its storage
            send_timeout: Read/write timeout per Bot API call in seconds
            bot: Preconfigured Bot instance (tests)
        """
        super().__init__()
        if bot is None and not bot_token:
            raise ValueError("bot_token is required")
        self.bot = bot or Bot(token=bot_token)
        self.storage = context.storage if context else None
        self.send_timeout = send_timeout

    async def execute(self, action: Action) -> None:
        if not isinstance(action, AlertAction):
            logger.debug(f"Telegram executor ignoring action type {action.type}")
            return
        await self.dispatch(action.token, action.transaction, action.decision, action.market_cap)

    async def dispatch(
        self,
        token: TrackedToken,
        transaction: Transaction,
        decision: GateDecision,
        market_cap: Optional[Decimal] = None,
    ) -> DispatchResult:
        if not decision.emit:
            return DispatchResult.SKIPPED
        if await self._already_sent(transaction):
            logger.debug(f"Alert for {transaction.tx_hash} already sent")
            return DispatchResult.SKIPPED

        message = render_alert(token, transaction, decision, market_cap)
        reply_markup = build_keyboard(decision.buttons)
        media = decision.media if transaction.direction == Direction.BUY else None

        try:
            await self._send(token.channel_id, message, reply_markup, media)
        except Forbidden as e:
            logger.warning(
                f"Bot was removed from chat {token.channel_id}, alert for {token.symbol} not delivered: {e}"
            )
            return DispatchResult.FAILED
        except BadRequest as e:
            if "chat not found" in str(e).lower():
                logger.warning(f"Chat {token.channel_id} not found, alert for {token.symbol} not delivered")
            else:
                logger.error(f"Telegram rejected alert for {transaction.tx_hash}: {e}")
            return DispatchResult.FAILED
        except TelegramError as e:
            logger.error(f"Failed to send alert for {transaction.tx_hash} to {token.channel_id}: {e}")
            return DispatchResult.FAILED

        if self.storage:
            try:
                await self.storage.mark_alert_sent(transaction.id)
            except Exception as e:
                logger.error(f"Alert sent but marking {transaction.tx_hash} failed: {e}")

        logger.info(
            f"Alert sent for {transaction.direction.value} of {token.symbol} in chat {token.channel_id}"
            f"{' [WHALE]' if decision.is_whale else ''}"
        )
        return DispatchResult.SENT

    async def _already_sent(self, transaction: Transaction) -> bool:
        if transaction.alert_sent:
            return True
        if not self.storage:
            return False
        # Actions survive restarts in the disk queue
        stored = await self.storage.get_transaction(transaction.chain, transaction.tx_hash)
        return bool(stored and stored.alert_sent)

    async def _send(self, chat_id: int, message: str, reply_markup, media) -> None:
        timeouts = dict(read_timeout=self.send_timeout, write_timeout=self.send_timeout)
        common = dict(
            chat_id=chat_id,
            caption=message,
            parse_mode="HTML",
            reply_markup=reply_markup,
            **timeouts,
        )

        if media is None:
            await self.bot.send_message(
                chat_id=chat_id,
                text=message,
                parse_mode="HTML",
                reply_markup=reply_markup,
                link_preview_options=LinkPreviewOptions(is_disabled=True),
                **timeouts,
            )
        elif media.type == "gif":
            await self.bot.send_animation(animation=media.url, **common)
        elif media.type == "image":
            await self.bot.send_photo(photo=media.url, **common)
        else:
            await self.bot.send_video(video=media.url, **common)

    async def close(self) -> None:
        try:
            await self.bot.shutdown()
        except Exception as e:
            logger.debug(f"Error shutting down Telegram bot: {e}")
