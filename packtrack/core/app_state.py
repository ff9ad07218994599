from packtrack.config import get_settings
from packtrack.core.registry import ContentStateRegistry


class AppState:
    def __init__(self) -> None:
        self.registry = ContentStateRegistry(max_entries=get_settings().state_cache_size)


state = AppState()
