"""
Base importer class for project descriptions.
"""

from abc import ABC, abstractmethod
from typing import Dict, List

from models.building import Building, EnvelopeElement


class BaseImporter(ABC):
    """Base class for all project importers."""

    def __init__(self, file_path: str, config: Dict = None):
        """
        Initialize importer.

        Args:
            file_path: Path to the project file
            config: Configuration dictionary
        """
        self.file_path = file_path
        self.config = config or {}
        self.buildings: List[Building] = []

    @abstractmethod
    def import_model(self) -> List[Building]:
        """
        Import the project into resolved element graphs.

        Returns:
            List of Building objects
        """
        pass

    @abstractmethod
    def extract_elements(self) -> List[EnvelopeElement]:
        """
        Envelope elements of the imported project.

        Returns:
            List of EnvelopeElement objects
        """
        pass
