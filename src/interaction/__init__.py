"""Scene interaction: the click-to-publish tool and its outgoing messages."""

from src.interaction.publish_click import (
    ClickFeedback,
    InteractionState,
    ModeSwitchPolicy,
    PointerEventKind,
    PublishClickEvent,
    PublishClickTool,
    PublishMode,
    ToolSnapshot,
    UncertaintyDeviation,
)

__all__ = [
    "ClickFeedback",
    "InteractionState",
    "ModeSwitchPolicy",
    "PointerEventKind",
    "PublishClickEvent",
    "PublishClickTool",
    "PublishMode",
    "ToolSnapshot",
    "UncertaintyDeviation",
]
