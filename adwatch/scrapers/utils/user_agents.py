"""Browser User-Agent strings sent with upstream requests."""

import random
from typing import List, Optional, Sequence, Tuple


USER_AGENTS: Tuple[str, ...] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/140.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/140.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/138.0.0.0 YaBrowser/25.8.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:143.0) Gecko/20100101 Firefox/143.0",
    "Mozilla/5.0 (X11; Ubuntu; Linux x86_64; rv:143.0) Gecko/20100101 Firefox/143.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/18.6 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/140.0.0.0 Safari/537.36 Edg/140.0.0.0",
)


class UserAgentPool:
    """Hands out agents in shuffled rounds, so every agent is used once per round.

    Args:
        agents: Agent strings to rotate through
        rng: Random source (tests pass a seeded one)
    """

    def __init__(self, agents: Sequence[str] = USER_AGENTS, rng: Optional[random.Random] = None):
        if not agents:
            raise ValueError("User-Agent pool is empty")
        self._agents = list(agents)
        self._rng = rng or random.Random()
        self._round: List[str] = []

    def next(self) -> str:
        if not self._round:
            self._round = list(self._agents)
            self._rng.shuffle(self._round)
        return self._round.pop()


_pool = UserAgentPool()


def get_user_agent() -> str:
    """Next agent from the shared pool."""
    return _pool.next()
