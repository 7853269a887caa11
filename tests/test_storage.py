"""Tests for storage backends."""

import pytest

from chatly.core.exceptions import InvalidInput, NotFound
from chatly.models import (
    AIConfig,
    Conversation,
    KnowledgeEntry,
    KnowledgeEntryType,
    MessageSender,
    MessageStatus,
    SortOrder,
    WidgetSettings,
)


@pytest.mark.asyncio
async def test_widget_settings_and_ai_config(storage):
    """Test widget settings CRUD and AI config defaults."""
    # Defaults before anything is saved
    assert await storage.get_widget_settings("tenant-a") is None
    config = await storage.get_ai_config("tenant-a")
    assert config == AIConfig()
    assert config.temperature == 0.7
    assert config.max_tokens == 1000

    # Save
    widget = WidgetSettings(tenant_id="tenant-a", color="#000000")
    widget.ai_settings.temperature = 0.0
    await storage.save_widget_settings(widget)

    # Read
    retrieved = await storage.get_widget_settings("tenant-a")
    assert retrieved.color == "#000000"
    assert (await storage.get_ai_config("tenant-a")).temperature == 0.0
    assert await storage.get_widget_settings("tenant-b") is None


@pytest.mark.asyncio
async def test_knowledge_crud(storage):
    """Test knowledge entry CRUD operations."""
    entry = KnowledgeEntry(id="kb-1", tenant_id="tenant-a", type=KnowledgeEntryType.TEXT, content="Fact")
    await storage.save_knowledge_entry(entry)

    assert (await storage.get_knowledge_entry("tenant-a", "kb-1")).content == "Fact"
    assert await storage.get_knowledge_entry("tenant-b", "kb-1") is None

    # Another tenant cannot delete or overwrite it
    assert await storage.delete_knowledge_entry("tenant-b", "kb-1") is False
    with pytest.raises(NotFound):
        await storage.save_knowledge_entry(
            KnowledgeEntry(id="kb-1", tenant_id="tenant-b", type=KnowledgeEntryType.TEXT, content="Hijack")
        )

    assert await storage.delete_knowledge_entry("tenant-a", "kb-1") is True
    assert await storage.get_knowledge_entry("tenant-a", "kb-1") is None


@pytest.mark.asyncio
async def test_knowledge_listing_is_scoped_and_newest_first(storage):
    for i in range(3):
        await storage.save_knowledge_entry(
            KnowledgeEntry(id=f"a{i}", tenant_id="tenant-a", type=KnowledgeEntryType.TEXT, content=f"A{i}")
        )
    await storage.save_knowledge_entry(
        KnowledgeEntry(id="b0", tenant_id="tenant-b", type=KnowledgeEntryType.TEXT, content="B0")
    )

    entries = await storage.list_knowledge_entries("tenant-a")
    assert {e.id for e in entries} == {"a0", "a1", "a2"}
    stamps = [e.updated_at for e in entries]
    assert stamps == sorted(stamps, reverse=True)
    assert len(await storage.list_knowledge_entries("tenant-a", limit=2)) == 2


@pytest.mark.asyncio
async def test_conversation_crud(storage):
    """Test conversation CRUD operations."""
    conv = Conversation(id="conv-1", tenant_id="tenant-a", visitor_id="visitor-123")
    saved = await storage.save_conversation(conv)
    assert saved.id == "conv-1"

    retrieved = await storage.get_conversation("tenant-a", "conv-1")
    assert retrieved.visitor_id == "visitor-123"
    assert await storage.get_conversation("tenant-b", "conv-1") is None

    with pytest.raises(NotFound):
        await storage.save_conversation(Conversation(id="conv-1", tenant_id="tenant-b"))


@pytest.mark.asyncio
async def test_touch_conversation_is_strictly_increasing(storage):
    conv = await storage.save_conversation(Conversation(id="conv-1", tenant_id="tenant-a"))

    first = (await storage.touch_conversation("tenant-a", "conv-1")).updated_at
    second = (await storage.touch_conversation("tenant-a", "conv-1")).updated_at
    assert first < second
    assert conv.updated_at == second

    with pytest.raises(NotFound):
        await storage.touch_conversation("tenant-b", "conv-1")


@pytest.mark.asyncio
async def test_conversation_listing_most_recent_first(storage):
    await storage.save_conversation(Conversation(id="old", tenant_id="tenant-a"))
    await storage.save_conversation(Conversation(id="new", tenant_id="tenant-a"))
    await storage.save_conversation(Conversation(id="other", tenant_id="tenant-b"))
    await storage.touch_conversation("tenant-a", "new")

    convs = await storage.list_conversations("tenant-a")
    assert [c.id for c in convs] == ["new", "old"]


@pytest.mark.asyncio
async def test_message_crud(storage):
    """Test message operations."""
    await storage.save_conversation(Conversation(id="conv-msg", tenant_id="tenant-a"))

    for i in range(5):
        sender = MessageSender.VISITOR if i % 2 == 0 else MessageSender.AGENT_AI
        await storage.append_message("tenant-a", "conv-msg", sender, f"Message {i}")

    oldest = await storage.list_messages("tenant-a", "conv-msg", limit=3)
    assert [m.content for m in oldest] == ["Message 0", "Message 1", "Message 2"]

    newest = await storage.list_messages("tenant-a", "conv-msg", limit=3, order=SortOrder.DESC)
    assert [m.content for m in newest] == ["Message 4", "Message 3", "Message 2"]

    recent = await storage.get_recent_messages("tenant-a", "conv-msg", limit=2)
    assert [m.content for m in recent] == ["Message 3", "Message 4"]
    assert all(m.status == MessageStatus.SENT for m in recent)


@pytest.mark.asyncio
async def test_messages_are_tenant_scoped(storage):
    await storage.save_conversation(Conversation(id="conv-1", tenant_id="tenant-a"))
    message = await storage.append_message("tenant-a", "conv-1", MessageSender.VISITOR, "hi")

    with pytest.raises(NotFound):
        await storage.append_message("tenant-b", "conv-1", MessageSender.VISITOR, "hi")
    with pytest.raises(NotFound):
        await storage.list_messages("tenant-b", "conv-1")

    assert await storage.get_message("tenant-b", message.id) is None
    with pytest.raises(NotFound):
        await storage.update_message_status("tenant-b", message.id, MessageStatus.SEEN)


@pytest.mark.asyncio
async def test_message_status_only_moves_forward(storage):
    await storage.save_conversation(Conversation(id="conv-1", tenant_id="tenant-a"))
    message = await storage.append_message("tenant-a", "conv-1", MessageSender.VISITOR, "hi")

    updated = await storage.update_message_status("tenant-a", message.id, MessageStatus.DELIVERED)
    assert updated.status == MessageStatus.DELIVERED

    # Same status again is a no-op
    updated = await storage.update_message_status("tenant-a", message.id, MessageStatus.DELIVERED)
    assert updated.status == MessageStatus.DELIVERED

    with pytest.raises(InvalidInput):
        await storage.update_message_status("tenant-a", message.id, MessageStatus.SENT)


@pytest.mark.asyncio
async def test_seed_demo_tenant(storage):
    widget = await storage.seed_demo_tenant()

    assert widget.tenant_id == "demo"
    assert len(await storage.list_knowledge_entries("demo")) == 2
    assert await storage.get_conversation("demo", "demo-conversation") is not None


@pytest.mark.asyncio
async def test_health_check(storage):
    """Test storage health check."""
    assert await storage.health_check() is True
