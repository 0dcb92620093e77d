from __future__ import annotations

from enum import Enum

from hyprvisor.domain.errors import UnknownTopicError


class Topic(Enum):
    """A stream of session state a client can subscribe to.

    The value is the textual wire form. Early clients identified topics by a
    numeric id, kept in ``legacy_id`` so both forms are validated at the same
    boundary.
    """

    WORKSPACE = "workspace"
    WINDOW = "window"
    SINK_VOLUME = "sink_volume"
    SOURCE_VOLUME = "source_volume"

    @property
    def wire_name(self) -> str:
        return self.value

    @property
    def legacy_id(self) -> int:
        return _LEGACY_IDS[self]

    @classmethod
    def from_wire(cls, name: str) -> Topic:
        try:
            return cls(name)
        except ValueError:
            raise UnknownTopicError(name) from None

    @classmethod
    def from_legacy(cls, legacy_id: int) -> Topic:
        for topic, topic_id in _LEGACY_IDS.items():
            if topic_id == legacy_id:
                return topic
        raise UnknownTopicError(legacy_id)

    @classmethod
    def names(cls) -> tuple[str, ...]:
        return tuple(topic.value for topic in cls)


_LEGACY_IDS: dict[Topic, int] = {
    Topic.WORKSPACE: 0,
    Topic.WINDOW: 1,
    Topic.SINK_VOLUME: 2,
    Topic.SOURCE_VOLUME: 3,
}
