"""Base class for flat-table writers."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any


class BaseWriter(ABC):
    """Writes named tables of flat rows under one output directory."""

    extension: str = ""

    def __init__(self, output_dir: str | Path) -> None:
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, name: str) -> Path:
        return self.output_dir / f"{name}.{self.extension}"

    @abstractmethod
    def write(self, rows: list[dict[str, Any]], name: str) -> Path:
        """Write rows to the table `name` and return the file written."""
