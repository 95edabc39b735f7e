"""Classification domain models."""

from enum import Enum


class HealthCategory(Enum):
    """Discrete DR health categories, worst to best.

    Each member carries its rank on the scale, the display color of the
    DR meter palette and a rich style for terminal output.
    """

    RED = (0, "Red", "#ff0000")
    BURNT = (1, "Burnt", "#ff4800")
    ORANGE = (2, "Orange", "#ff9100")
    YELLOW = (3, "Yellow", "#ffd900")
    LIME = (4, "Lime", "#d9ff00")
    MINT = (5, "Mint", "#90ff00")
    GREEN = (6, "Green", "#48ff00")
    NEON = (7, "Neon", "#00ff00")

    def __init__(self, rank: int, label: str, hex_color: str):
        self.rank = rank
        self.label = label
        self.hex_color = hex_color

    @property
    def style(self) -> str:
        """Rich style string for this category."""
        return f"bold {self.hex_color}"
