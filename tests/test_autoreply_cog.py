"""Tests for the Discord-facing helpers: chunking, channel keys and the delivery sink."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from cogs.autoreply.cogs.autoreply_cog import DiscordDeliverySink, channel_key, split_message


def _sent(message_id: int) -> MagicMock:
    msg = MagicMock()
    msg.id = message_id
    return msg


class TestSplitMessage:
    def test_short_text_is_one_chunk(self):
        assert split_message("hello") == ["hello"]

    def test_long_text_is_chunked_within_limit(self):
        text = ("word " * 1000).strip()
        chunks = split_message(text, 2000)
        assert all(len(c) <= 2000 for c in chunks)
        assert "".join(chunks) == text

    def test_prefers_paragraph_breaks(self):
        text = "a" * 1500 + "\n\n" + "b" * 1000
        chunks = split_message(text, 2000)
        assert chunks[0] == "a" * 1500 + "\n\n"


class TestChannelKey:
    def test_guild_channel(self):
        channel = MagicMock(spec=discord.TextChannel)
        channel.id = 123
        assert channel_key(channel, MagicMock()) == "123"

    def test_dm_channel(self):
        author = MagicMock()
        author.id = 42
        assert channel_key(MagicMock(spec=discord.DMChannel), author) == "private:42"


class TestDeliverySink:
    @pytest.mark.asyncio
    async def test_send_quotes_first_chunk_only(self):
        channel = MagicMock()
        channel.id = 100
        channel.send = AsyncMock(side_effect=[_sent(1), _sent(2)])
        bot = MagicMock()
        bot.get_channel = MagicMock(return_value=channel)

        sink = DiscordDeliverySink(bot, MagicMock())
        ids = await sink.send("x" * 2500, "100", quote_id="55")

        assert ids == ["1", "2"]
        first_reference = channel.send.call_args_list[0].kwargs["reference"]
        assert first_reference.message_id == 55
        assert channel.send.call_args_list[1].kwargs["reference"] is None

    @pytest.mark.asyncio
    async def test_send_to_private_channel_opens_dm(self):
        dm = MagicMock()
        dm.id = 7
        dm.send = AsyncMock(return_value=_sent(9))
        user = MagicMock()
        user.dm_channel = None
        user.create_dm = AsyncMock(return_value=dm)
        bot = MagicMock()
        bot.get_user = MagicMock(return_value=user)

        sink = DiscordDeliverySink(bot, MagicMock())
        assert await sink.send("hi", "private:42") == ["9"]
        bot.get_user.assert_called_once_with(42)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bot_prefix", ["?", ["<@1> ", "<@!1> ", "?"]])
    async def test_execute_uses_the_bot_prefix(self, bot_prefix):
        channel = MagicMock()
        ctx = MagicMock()
        bot = MagicMock()
        bot.get_prefix = AsyncMock(return_value=bot_prefix)
        bot.get_channel = MagicMock(return_value=channel)
        bot.get_context = AsyncMock(return_value=ctx)
        bot.invoke = AsyncMock()
        trigger = SimpleNamespace(content="hello", channel=None, author=None)

        await DiscordDeliverySink(bot, trigger).execute("ping", "100")

        invoked = bot.get_context.call_args.args[0]
        assert invoked.content == "?ping"
        assert invoked.channel is channel
        assert trigger.content == "hello"
        bot.invoke.assert_awaited_once_with(ctx)
