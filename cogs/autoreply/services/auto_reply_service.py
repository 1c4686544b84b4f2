"""Main auto-reply service orchestrating all layers."""

import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol

from ..core.config import SettingsConfig
from ..core.exceptions import AdaptersExhaustedException, ResponseParseException
from ..models.message import ChatMessage, MarkType, Member, MentionInfo
from ..models.response import (
    AdapterResponse,
    FailResponse,
    InterpretedResponse,
    SkipResponse,
    SuccessResponse,
    Usage,
)
from .adapter_switcher import AdapterSwitcher
from .context_builder import ContextBuilder
from .markup import DiscordMarkup
from .queue_manager import QueueManager
from .response_interpreter import ResponseInterpreter
from .trigger_scheduler import TriggerScheduler

logger = logging.getLogger(__name__)


class DeliverySink(Protocol):
    """Where replies, reports and commands go."""

    async def send(self, text: str, channel_id: str, quote_id: Optional[str] = None) -> List[str]:
        """Send text and return the ids of the messages created."""
        ...

    async def execute(self, command: str, channel_id: str) -> None:
        """Run a bot command on behalf of the bot in ``channel_id``."""
        ...


def _format_usage(usage: Optional[Usage]) -> str:
    if usage is None:
        return "n/a"
    return f"{usage.prompt_tokens} prompt + {usage.completion_tokens} completion = {usage.total_tokens}"


class AutoReplyService:
    """Queue, schedule, ask a backend, interpret and deliver."""

    def __init__(
        self,
        queue_manager: QueueManager,
        scheduler: TriggerScheduler,
        switcher: AdapterSwitcher,
        interpreter: ResponseInterpreter,
        context_builder: ContextBuilder,
        settings: SettingsConfig,
        markup: Optional[DiscordMarkup] = None
    ):
        """
        Initialize auto-reply service.

        Args:
            queue_manager: Message windows and marks
            scheduler: Per-channel trigger countdown
            switcher: Backend roster with failover
            interpreter: Model output validation
            context_builder: Prompt assembly
            settings: Reply behaviour settings
            markup: Token renderer
        """
        self.queue_manager = queue_manager
        self.scheduler = scheduler
        self.switcher = switcher
        self.interpreter = interpreter
        self.context_builder = context_builder
        self.settings = settings
        self.markup = markup or DiscordMarkup()

    async def ingest(self, message: ChatMessage) -> bool:
        """Store a message without evaluating the trigger."""
        if not self.queue_manager.is_channel_allowed(message.channel_id):
            return False
        return await self.queue_manager.enqueue(message)

    async def process(
        self,
        message: ChatMessage,
        mention: Optional[MentionInfo] = None,
        members: Iterable[Member] = (),
        sink: Optional[DeliverySink] = None,
        bot_online: bool = True
    ) -> Optional[InterpretedResponse]:
        """
        Process an inbound message end-to-end.

        Args:
            message: Inbound message
            mention: How the message addresses the bot
            members: Member directory for mention resolution
            sink: Delivery target for replies and commands
            bot_online: Whether "@here" reaches the bot

        Returns:
            The interpreted response, or None when the channel was not due

        Raises:
            ResponseParseException: If the model output could not be interpreted
            AdaptersExhaustedException: If every backend failed
        """
        if not await self.ingest(message):
            return None

        addressed = mention.is_addressed(bot_online) if mention else False
        decision = await self.scheduler.evaluate(message.channel_id, addressed=addressed)
        if not decision.due:
            return None

        logger.info(f"Channel {message.channel_id} is due ({', '.join(decision.reasons)})")
        return await self.respond(message.channel_id, members, sink)

    async def respond(
        self,
        channel_id: str,
        members: Iterable[Member] = (),
        sink: Optional[DeliverySink] = None
    ) -> InterpretedResponse:
        """Run one model turn for a due channel and deliver the result."""
        window = await self.queue_manager.slot_window(channel_id)
        system_prompt = self.context_builder.system_prompt()
        user_prompt = self.context_builder.user_prompt(window, channel_id)
        turn: Dict[str, Any] = {"adapter_index": None}

        async def request(history: List[Dict[str, Any]]) -> AdapterResponse:
            index, response = await self.switcher.call(system_prompt, user_prompt, history=history)
            turn["adapter_index"] = index
            return response

        try:
            result = await self.interpreter.resolve(request, channel_id, members)
        except AdaptersExhaustedException as e:
            logger.error(f"❌ No backend answered for channel {channel_id}: {e}")
            raise

        if isinstance(result, FailResponse):
            logger.error(f"❌ Could not interpret response for channel {channel_id}: {result.reason}")
            await self._report(
                sink,
                f"❌ Response parse failure in {channel_id}\n"
                f"Reason: {result.reason}\n"
                f"Adapter: {turn['adapter_index']}\n"
                f"Raw response:\n{result.raw_content}"
            )
            raise ResponseParseException(result.reason, result.raw_content)

        next_count = self.scheduler.reset(channel_id, result.next_trigger_suggestion)

        if isinstance(result, SkipResponse):
            logger.info(f"Skipped reply for channel {channel_id}")
            await self._report(sink, self._turn_report(channel_id, result, next_count, turn["adapter_index"]))
            return result

        await self._deliver(result, sink)
        await self._report(sink, self._turn_report(channel_id, result, next_count, turn["adapter_index"]))
        return result

    async def _deliver(self, result: SuccessResponse, sink: Optional[DeliverySink]) -> None:
        if sink is None:
            return
        text, quote_id = self.markup.render(result.tokens)
        if text.strip():
            try:
                sent_ids = await sink.send(text, result.address, quote_id)
            except Exception as e:
                logger.error(f"❌ Reply failed in {result.address}: {e}")
            else:
                for message_id in sent_ids:
                    self.queue_manager.set_mark(message_id, MarkType.LLM)
                logger.info(f"✅ Replied in {result.address}: {self.markup.plain_text(result.tokens)}")

        for command in result.commands:
            try:
                await sink.execute(command, result.address)
                logger.info(f"Executed command in {result.address}: {command}")
            except Exception as e:
                logger.error(f"❌ Command failed in {result.address}: {command} ({e})")

    def _turn_report(
        self,
        channel_id: str,
        result: InterpretedResponse,
        next_count: int,
        adapter_index: Optional[int]
    ) -> str:
        lines = [f"Status: {result.status}", f"Channel: {channel_id}"]
        if isinstance(result, SuccessResponse):
            lines.append(f"Reply: {self.markup.plain_text(result.tokens)}")
            lines.append(f"Address: {result.address}")
            if result.commands:
                lines.append(f"Commands: {', '.join(result.commands)}")
        lines.extend([
            f"Logic: {result.logic or '-'}",
            f"Next reply in: {next_count}",
            f"Tokens: {_format_usage(result.usage)}",
            f"Adapter: {adapter_index}",
        ])
        return "\n".join(lines)

    async def _report(self, sink: Optional[DeliverySink], report: str) -> None:
        """Mirror a turn report to the logic redirect channel."""
        if sink is None or not self.settings.logic_redirect_enabled:
            return
        target = self.settings.logic_redirect_target
        if not target:
            logger.warning("⚠️ Logic redirect enabled without a target channel")
            return
        try:
            sent_ids = await sink.send(report, target)
        except Exception as e:
            logger.warning(f"⚠️ Could not send logic report to {target}: {e}")
            return
        for message_id in sent_ids:
            self.queue_manager.set_mark(message_id, MarkType.LOGIC_REDIRECT)

    # ==================== Administration ====================

    async def clear_memory(
        self,
        target: Optional[str] = None,
        person: Optional[str] = None,
        current_channel: Optional[str] = None
    ) -> str:
        """
        Clear stored messages.

        Args:
            target: Comma separated channel ids, ``all`` or ``private:all``
            person: Sender id whose messages are removed everywhere
            current_channel: Default target when neither is given

        Returns:
            Human readable summary
        """
        if person:
            cleared = await self.queue_manager.clear_by_sender(person)
            return f"✅ Cleared memory of {person}" if cleared else f"⚠️ No stored messages from {person}"

        targets = [t.strip() for t in (target or current_channel or "").split(",") if t.strip()]
        if not targets:
            return "⚠️ No target given"

        results = []
        for item in targets:
            if item == "all":
                cleared = await self.queue_manager.clear_all()
                label = "all group channels"
            elif item == "private:all":
                cleared = await self.queue_manager.clear_private_all()
                label = "all private channels"
            else:
                cleared = await self.queue_manager.clear_channel(item)
                label = item
            results.append(f"✅ Cleared memory of {label}" if cleared else f"⚠️ Nothing stored for {label}")
        return "\n".join(results)
