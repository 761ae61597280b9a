# Copyright (c) 2026, WSO2 LLC. (https://www.wso2.com).
#
# WSO2 LLC. licenses this file to you under the Apache License,
# Version 2.0 (the "License"); you may not use this file except
# in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing,
# software distributed under the License is distributed on an
# "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY
# KIND, either express or implied.  See the License for the
# specific language governing permissions and limitations
# under the License.

"""
Tests for relationship state, stores and the deferred span queue.
"""

from agent_history_exporter.deferred import DeferredSpanQueue
from agent_history_exporter.state import HierarchyState, InMemoryStore

from conftest import make_span


class RecordingStore(InMemoryStore):
    """Store that remembers every key ever written."""

    instances = []

    def __init__(self):
        super().__init__()
        self.written = []
        RecordingStore.instances.append(self)

    def set(self, key, value):
        self.written.append(key)
        super().set(key, value)


class TestInMemoryStore:
    """Test the default store."""

    def test_basic_operations(self):
        store = InMemoryStore()
        store.set("a", "1")
        store.set("a", "2")

        assert store.get("a") == "2"
        assert "a" in store
        assert len(store) == 1
        assert list(store.items()) == [("a", "2")]

        store.delete("a")
        store.delete("missing")
        assert store.get("a") is None
        assert len(store) == 0


class TestHierarchyState:
    """Test parent map handling."""

    def test_rebuild_parent_map_replaces_trace_map(self):
        state = HierarchyState()
        state.rebuild_parent_map({"writer": "planner"})
        state.rebuild_parent_map({"critic": "planner"})

        assert state.parent_map.get("writer") is None
        assert state.parent_map.get("critic") == "planner"
        assert state.global_parent_map.get("writer") == "planner"

    def test_find_parent_prefers_trace_map(self):
        state = HierarchyState()
        state.global_parent_map.set("writer", "old-planner")
        assert state.find_parent("writer") == "old-planner"

        state.rebuild_parent_map({"writer": "planner"})
        assert state.find_parent("writer") == "planner"

    def test_clear(self):
        state = HierarchyState()
        state.rebuild_parent_map({"writer": "planner"})
        state.open_histories.add("h-1")
        state.guidance_shown.add("t-1")

        state.clear()

        assert state.find_parent("writer") is None
        assert state.open_histories == set()
        assert state.guidance_shown == set()

    def test_custom_store_factory(self):
        RecordingStore.instances = []
        state = HierarchyState(store_factory=RecordingStore)
        state.tool_span_agents.set("span-1", "writer")

        assert len(RecordingStore.instances) == 5
        assert state.tool_span_agents.written == ["span-1"]


class TestDeferredSpanQueue:
    """Test deferral bookkeeping."""

    def test_defer_and_pop_in_order(self):
        queue = DeferredSpanQueue()
        first, second = make_span("t1", name="ai.toolCall"), make_span("t2", name="ai.toolCall")

        assert queue.defer(first) is True
        assert queue.defer(second) is True
        assert len(queue) == 2

        assert queue.pop_for_trace(first.trace_id) == [first, second]
        assert queue.pop_for_trace(first.trace_id) == []
        assert len(queue) == 0

    def test_not_queued_twice_while_pending(self):
        queue = DeferredSpanQueue()
        span = make_span("t1", name="ai.toolCall")

        assert queue.defer(span) is True
        assert queue.defer(span) is False
        assert queue.pop_for_trace(span.trace_id) == [span]

    def test_nothing_kept_after_pop(self):
        queue = DeferredSpanQueue()
        span = make_span("t1", name="ai.toolCall")
        queue.defer(span)
        queue.pop_for_trace(span.trace_id)

        assert queue._pending == {}
        assert len(queue) == 0

    def test_pop_is_per_trace(self):
        queue = DeferredSpanQueue()
        queue.defer(make_span("t1", name="ai.toolCall"))
        queue.defer(make_span("t2", name="ai.toolCall", trace_id="1" * 32))

        assert [s.span_id for s in queue.pop_for_trace("1" * 32)] == ["t2"]
        assert len(queue) == 1

    def test_clear_forgets_history(self):
        queue = DeferredSpanQueue()
        span = make_span("t1", name="ai.toolCall")
        queue.defer(span)
        queue.clear()

        assert len(queue) == 0
        assert queue.defer(span) is True
