from abc import ABC, abstractmethod

import numpy as np


class TextRecognizer(ABC):
    @abstractmethod
    def recognize(self, image: np.ndarray) -> list[str]:
        """Recognize text lines in one BGR frame. Returns [] when no text is found.

        Raise RecognizerError (or any exception) on an engine fault; the
        scan loop skips that frame.
        """
        ...
