import random
from typing import Optional, Sequence, List, TypeVar

T = TypeVar('T')


class RandomChooser:
    """Uniform random selection for deciders, categories and scenarios.

    Installed on the app as ``app.extensions['hotseat.chooser']``; tests swap
    in a scripted chooser with the same two methods.
    """

    def __init__(self, seed: Optional[int] = None):
        self._rng = random.Random(seed)

    def choose(self, options: Sequence[T]) -> T:
        if not options:
            raise ValueError('Cannot choose from an empty sequence')
        return self._rng.choice(list(options))

    def sample(self, options: Sequence[T], k: int) -> List[T]:
        return self._rng.sample(list(options), k)
