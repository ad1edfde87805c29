"""Abstract speech-to-text engine interface.

Concrete recognizers (local models, hosted APIs) live outside this
package and subclass SpeechToTextEngine.
"""

from abc import ABC, abstractmethod

import numpy as np


class SpeechToTextEngine(ABC):
    """Abstract base class for speech-to-text implementations.

    Subclasses must implement the transcribe() method and set name.
    """

    name: str = "unknown"

    @abstractmethod
    async def transcribe(
        self,
        samples: np.ndarray,
        sample_rate: int,
        context_prompt: str | None = None,
    ) -> str:
        """Recognize the speech in one turn.

        Args:
            samples: Mono float32 samples of a single turn.
            sample_rate: Sample rate of samples in Hz.
            context_prompt: Recent dialogue, used by engines that accept
                a prompt to keep names and terminology consistent.

        Returns:
            Recognized text; an empty string when nothing was recognized.
        """
