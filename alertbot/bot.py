"""Telegram front-end: receives chat messages and replies through the conversation machine."""

import logging
from typing import Any, Optional

from telegram import Update
from telegram.ext import Application, ContextTypes, MessageHandler, filters

from .config import TelegramConfig
from .conversation import ConversationService
from .services.delivery_service import DeliveryFailed, DeliveryService

logger = logging.getLogger(__name__)


class Bot:
    """Telegram bot lifecycle and inbound message handling.

    Runs in webhook mode when ``webhook_url`` is configured (updates arrive
    through the HTTP server) and falls back to long polling otherwise.
    """

    def __init__(
        self,
        config: TelegramConfig,
        conversation: ConversationService,
        delivery: DeliveryService,
    ) -> None:
        self.config = config
        self.conversation = conversation
        self.delivery = delivery
        self.application: Optional[Application] = None

    @property
    def uses_webhook(self) -> bool:
        return bool(self.config.webhook_url)

    @property
    def webhook_path(self) -> str:
        return f"/webhook/{self.config.webhook_path_secret()}"

    def _build_application(self) -> Application:
        builder = (
            Application.builder()
            .token(self.config.bot_token.get_secret_value())
            .concurrent_updates(True)
        )
        if self.uses_webhook:
            # Updates are fed in by the HTTP server, no updater needed
            builder = builder.updater(None)
        application = builder.build()

        application.add_handler(
            MessageHandler(filters.UpdateType.MESSAGE & filters.TEXT, self._on_message)
        )
        application.add_error_handler(self._on_error)
        return application

    async def start(self) -> None:
        """Initialize the bot and start receiving updates."""
        self.application = self._build_application()
        await self.application.initialize()
        self.delivery.attach(self.application.bot)

        username = self.application.bot.username
        self.conversation.machine.router.bot_username = username
        logger.info("Logged in to Telegram as @%s", username)

        if self.uses_webhook:
            base_url = self.config.webhook_url.rstrip("/")
            full_url = f"{base_url}{self.webhook_path}"
            await self.application.bot.delete_webhook()
            await self.application.bot.set_webhook(url=full_url)
            logger.info("Webhook set to %s/webhook/***", base_url)
            await self.application.start()
        else:
            await self.application.start()
            await self.application.updater.start_polling()
            logger.warning("No webhook_url configured - using polling (not recommended for production)")

        logger.info("Telegram bot started successfully")

    async def stop(self) -> None:
        """Stop receiving updates and release the Telegram session."""
        if self.application is None:
            return

        updater = self.application.updater
        if updater is not None and updater.running:
            await updater.stop()
            logger.info("Telegram bot polling stopped")
        if self.application.running:
            await self.application.stop()
        await self.application.shutdown()
        self.delivery.attach(None)
        self.application = None
        logger.info("Telegram bot stopped")

    async def process_webhook_update(self, data: dict[str, Any]) -> None:
        """Queue a raw update received on the webhook route.

        Raises:
            RuntimeError: If the bot hasn't been started.
        """
        if self.application is None:
            raise RuntimeError("Bot not initialized")
        update = Update.de_json(data, self.application.bot)
        await self.application.update_queue.put(update)

    async def handle_text(self, chat_id: int, text: Optional[str]) -> None:
        """Run one chat message through the conversation and send the replies."""
        replies = await self.conversation.handle_message(chat_id, text)
        for reply in replies:
            try:
                await self.delivery.send_message(chat_id, reply)
            except DeliveryFailed as e:
                logger.error("Failed to reply to chatId %s: %s", chat_id, e)
                return

    async def _on_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        message = update.effective_message
        chat = update.effective_chat
        if message is None or chat is None:
            return
        await self.handle_text(chat.id, message.text)

    async def _on_error(self, update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        logger.error("Error while handling Telegram update: %s", context.error, exc_info=context.error)
