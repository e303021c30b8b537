from typing import Literal


# Flow: Narrow types for NDJSON job events.
EventType = Literal["progress", "completed", "paused", "resumed", "cancelled", "removed"]
StreamLineType = Literal["snapshot", "event"]
