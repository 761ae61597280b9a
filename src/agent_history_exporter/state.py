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
Process-wide relationship state shared by the exporter components.

Every map starts empty when the exporter is created and is cleared only by
an explicit flush or shutdown. The maps are KeyValueStore instances built by
a store factory, so a bounded or evicting store can replace the default
unbounded dictionary without touching the components that use them.
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, Generic, Hashable, Iterator, Optional, Set, Tuple, TypeVar


K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class KeyValueStore(ABC, Generic[K, V]):
    """Minimal key-value store interface used for all relationship maps."""

    @abstractmethod
    def get(self, key: K) -> Optional[V]:
        """Return the value for key, or None."""

    @abstractmethod
    def set(self, key: K, value: V) -> None:
        """Store value under key, replacing any previous value."""

    @abstractmethod
    def delete(self, key: K) -> None:
        """Remove key if present."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry."""

    @abstractmethod
    def items(self) -> Iterator[Tuple[K, V]]:
        """Iterate over a snapshot of the stored entries."""

    @abstractmethod
    def __len__(self) -> int: ...

    def __contains__(self, key: object) -> bool:
        return self.get(key) is not None  # type: ignore[arg-type]


class InMemoryStore(KeyValueStore[K, V]):
    """Unbounded dictionary-backed store."""

    def __init__(self) -> None:
        self._data: Dict[K, V] = {}

    def get(self, key: K) -> Optional[V]:
        return self._data.get(key)

    def set(self, key: K, value: V) -> None:
        self._data[key] = value

    def delete(self, key: K) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def items(self) -> Iterator[Tuple[K, V]]:
        return iter(list(self._data.items()))

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data


StoreFactory = Callable[[], KeyValueStore]


class HierarchyState:
    """
    All mutable state kept across export calls.

    Attributes:
        parent_map: agent id -> parent agent id for the trace being processed
        global_parent_map: agent id -> parent agent id across all traces
        trace_histories: (agent id, trace id) -> history id
        global_histories: agent id -> most recently created history id
        tool_span_agents: tool span id -> resolved agent id
        open_histories: history ids created but not yet ended
        guidance_shown: trace ids that already logged the default agent guidance
    """

    def __init__(self, store_factory: StoreFactory = InMemoryStore):
        self.parent_map: KeyValueStore[str, str] = store_factory()
        self.global_parent_map: KeyValueStore[str, str] = store_factory()
        self.trace_histories: KeyValueStore[Tuple[str, str], str] = store_factory()
        self.global_histories: KeyValueStore[str, str] = store_factory()
        self.tool_span_agents: KeyValueStore[str, str] = store_factory()
        self.open_histories: Set[str] = set()
        self.guidance_shown: Set[str] = set()

    def rebuild_parent_map(self, relationships: Dict[str, str]) -> None:
        """Replace the trace-scoped parent map and mirror it into the global map."""
        self.parent_map.clear()
        for agent_id, parent_agent_id in relationships.items():
            self.parent_map.set(agent_id, parent_agent_id)
            self.global_parent_map.set(agent_id, parent_agent_id)

    def find_parent(self, agent_id: str) -> Optional[str]:
        """Parent of an agent from the trace map, falling back to the global map."""
        return self.parent_map.get(agent_id) or self.global_parent_map.get(agent_id)

    def clear(self) -> None:
        self.parent_map.clear()
        self.global_parent_map.clear()
        self.trace_histories.clear()
        self.global_histories.clear()
        self.tool_span_agents.clear()
        self.open_histories.clear()
        self.guidance_shown.clear()
