"""Unit tests for the conversation state manager."""

import asyncio

import httpx
import pytest

from rpms_chat.schemas.chat import Message
from rpms_chat.services.chat_client import ChatClient
from rpms_chat.services.conversation import ConversationManager, ConversationState
from rpms_chat.services.polling import PeriodicTask
from rpms_chat.services.session import Session
from rpms_chat.services.transport import TransportClient


class TestSelection:
    """Idle -> Loading -> Active transitions."""

    @pytest.mark.asyncio
    async def test_starts_idle(self, conversation: ConversationManager) -> None:
        assert conversation.state == ConversationState.IDLE
        assert conversation.messages == []
        assert conversation.active_contact is None

    @pytest.mark.asyncio
    async def test_select_populates_thread(self, conversation: ConversationManager) -> None:
        await conversation.refresh_contacts()

        res = await conversation.select("u-editor")

        assert res.success is True
        assert conversation.state == ConversationState.ACTIVE
        assert [m.id for m in conversation.messages] == ["m1", "m2", "m3"]
        assert conversation.message_polling is True
        conversation.deselect()

    @pytest.mark.asyncio
    async def test_unknown_contact(self, conversation: ConversationManager) -> None:
        await conversation.refresh_contacts()

        res = await conversation.select("u-ghost")

        assert res.success is False
        assert res.status_code == 404
        assert conversation.state == ConversationState.IDLE

    @pytest.mark.asyncio
    async def test_switch_away_and_back_refetches(self, conversation: ConversationManager, backend) -> None:
        await conversation.refresh_contacts()
        await conversation.select("u-editor")
        await conversation.select("u-coord")

        assert conversation.messages == []

        await conversation.select("u-editor")

        fetched = [r.url.params["contact_id"] for r in backend.calls("/chat/messages")]
        assert fetched == ["u-editor", "u-coord", "u-editor"]
        assert len(conversation.messages) == 3
        conversation.deselect()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("targets", [["u-editor", "u-editor"], ["u-editor", "u-coord", "u-editor"]])
    async def test_overlapping_selects_leave_single_poll(
        self, chat_client: ChatClient, backend, targets
    ) -> None:
        gates = [asyncio.Event() for _ in targets]
        all_waiting = asyncio.Event()
        seen = []

        async def gated_messages(request: httpx.Request) -> httpx.Response:
            idx = len(seen)
            seen.append(idx)
            if idx < len(gates):
                if idx == len(gates) - 1:
                    all_waiting.set()
                await gates[idx].wait()
            return httpx.Response(200, json=backend.threads.get(request.url.params["contact_id"], []))

        def message_polls():
            return [t for t in asyncio.all_tasks() if t.get_name().startswith("poll:messages") and not t.done()]

        backend.overrides["/chat/messages"] = gated_messages
        conv = ConversationManager(chat_client, message_interval=60, contact_interval=60, unread_interval=60)
        await conv.refresh_contacts()

        pending = []
        for target in targets:
            pending.append(asyncio.create_task(conv.select(target)))
            await asyncio.sleep(0)
        await all_waiting.wait()

        # Older selections finishing first must not activate the view
        for gate, task in zip(gates[:-1], pending[:-1]):
            gate.set()
            await task
            assert conv.state == ConversationState.LOADING
            assert conv.message_polling is False
        gates[-1].set()
        await pending[-1]

        assert conv.state == ConversationState.ACTIVE
        assert conv.active_contact.id == targets[-1]
        assert [t.get_name() for t in message_polls()] == [f"poll:messages:{targets[-1]}"]

        conv.deselect()
        await asyncio.sleep(0.01)

        assert message_polls() == []

    @pytest.mark.asyncio
    async def test_deselect_cancels_polling(self, conversation: ConversationManager) -> None:
        await conversation.refresh_contacts()
        await conversation.select("u-editor")

        conversation.deselect()

        assert conversation.state == ConversationState.IDLE
        assert conversation.messages == []
        assert conversation.message_polling is False

    @pytest.mark.asyncio
    async def test_first_load_failure_yields_empty_thread(
        self, conversation: ConversationManager, backend, failing_route
    ) -> None:
        await conversation.refresh_contacts()
        backend.overrides["/chat/messages"] = failing_route(500, {"error": "Failed to fetch messages"})

        res = await conversation.select("u-editor")

        assert res.success is False
        assert conversation.state == ConversationState.ACTIVE
        assert conversation.messages == []
        assert conversation.error == "Failed to fetch messages"
        conversation.deselect()


class TestRefresh:
    """Periodic refresh semantics."""

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_list(
        self, conversation: ConversationManager, backend, failing_route
    ) -> None:
        await conversation.refresh_contacts()
        await conversation.select("u-editor")
        backend.overrides["/chat/messages"] = failing_route(503)

        await conversation.refresh_messages()

        assert [m.id for m in conversation.messages] == ["m1", "m2", "m3"]
        assert conversation.error == "Server error (503)"
        conversation.deselect()

    @pytest.mark.asyncio
    async def test_failed_contact_refresh_keeps_contacts(
        self, conversation: ConversationManager, backend, failing_route
    ) -> None:
        await conversation.refresh_contacts()
        backend.overrides["/chat/contacts"] = failing_route(500)

        await conversation.refresh_contacts()

        assert len(conversation.contacts) == 3

    @pytest.mark.asyncio
    async def test_non_array_contacts_is_empty_list(self, conversation: ConversationManager, backend) -> None:
        backend.contacts = {"unexpected": True}

        await conversation.refresh_contacts()

        assert conversation.contacts == []
        assert conversation.contacts_loading is False

    @pytest.mark.asyncio
    async def test_stale_response_is_discarded(self, session: Session, message_factory) -> None:
        release_slow = asyncio.Event()
        slow_started = asyncio.Event()
        calls = {"n": 0}
        old = [message_factory("old")]
        new = [message_factory("old"), message_factory("new", created_at="2024-03-01T10:00:00")]

        async def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            if path.endswith("/chat/contacts"):
                return httpx.Response(200, json=[{"id": "u-editor", "name": "Ada"}])
            calls["n"] += 1
            if calls["n"] == 2:
                # The first poll hangs until a newer poll has landed
                slow_started.set()
                await release_slow.wait()
                return httpx.Response(200, json=old)
            return httpx.Response(200, json=new if calls["n"] > 2 else old)

        client = ChatClient(TransportClient(session, base_url="http://rpms.test/api/v1",
                                            transport=httpx.MockTransport(handler)))
        conv = ConversationManager(client, message_interval=60, contact_interval=60, unread_interval=60)
        await conv.refresh_contacts()
        await conv.select("u-editor")

        slow = asyncio.create_task(conv.refresh_messages())
        await slow_started.wait()
        await conv.refresh_messages()
        assert [m.id for m in conv.messages] == ["old", "new"]

        release_slow.set()
        await slow

        assert [m.id for m in conv.messages] == ["old", "new"]
        conv.deselect()

    @pytest.mark.asyncio
    async def test_message_poll_runs_on_interval(self, chat_client: ChatClient, backend) -> None:
        conv = ConversationManager(chat_client, message_interval=0.01, contact_interval=60, unread_interval=60)
        await conv.refresh_contacts()
        await conv.select("u-editor")

        await asyncio.sleep(0.1)
        conv.deselect()
        polled = len(backend.calls("/chat/messages"))
        await asyncio.sleep(0.05)

        assert polled >= 3
        assert len(backend.calls("/chat/messages")) == polled

    @pytest.mark.asyncio
    async def test_start_and_stop(self, conversation: ConversationManager, backend) -> None:
        backend.unread = 4

        await conversation.start()

        assert conversation.contact_polling is True
        assert conversation.unread_count == 4
        await conversation.stop()
        assert conversation.contact_polling is False


class TestApplySentMessage:
    """Optimistic append after a successful send."""

    @pytest.mark.asyncio
    async def test_appends_and_updates_preview(self, conversation: ConversationManager, message_factory) -> None:
        await conversation.refresh_contacts()
        await conversation.select("u-editor")
        sent = Message.model_validate(
            message_factory("m9", sender_id="u-me", receiver_id="u-editor", content="New",
                            created_at="2024-03-03T08:00:00")
        )

        conversation.apply_sent_message(sent)

        assert conversation.messages[-1].id == "m9"
        assert len(conversation.messages) == 4
        assert conversation.get_contact("u-editor").last_message.content == "New"
        assert conversation.active_contact.last_message.content == "New"
        conversation.deselect()

    @pytest.mark.asyncio
    async def test_other_contact_only_updates_preview(self, conversation: ConversationManager, message_factory) -> None:
        await conversation.refresh_contacts()
        await conversation.select("u-editor")
        sent = Message.model_validate(
            message_factory("m9", sender_id="u-me", receiver_id="u-coord", content="Hey Carl")
        )

        conversation.apply_sent_message(sent)

        assert len(conversation.messages) == 3
        assert conversation.get_contact("u-coord").last_message.content == "Hey Carl"
        conversation.deselect()


class TestPeriodicTask:
    """Cancellable polling handle."""

    @pytest.mark.asyncio
    async def test_cancel_stops_ticks(self) -> None:
        ticks = []

        async def tick() -> None:
            ticks.append(1)

        task = PeriodicTask("test", 0.01, tick)
        task.start()
        await asyncio.sleep(0.05)
        await task.stop()
        count = len(ticks)
        await asyncio.sleep(0.03)

        assert count >= 1
        assert len(ticks) == count
        assert task.running is False

    @pytest.mark.asyncio
    async def test_failing_tick_keeps_polling(self) -> None:
        ticks = []

        async def tick() -> None:
            ticks.append(1)
            raise RuntimeError("boom")

        task = PeriodicTask("test", 0.01, tick)
        task.start()
        await asyncio.sleep(0.06)
        await task.stop()

        assert len(ticks) >= 2
