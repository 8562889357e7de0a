# src/classification/ClassNames.py
import csv
import logging
from pathlib import Path
from typing import List, Optional


UNKNOWN_LABEL = "Unknown"


class ClassNameTable:
    """Ordered class labels indexed by score-vector position.

    Loaded once at startup from the AudioSet class map CSV
    (header row, then index,mid,display_name). A missing or short table
    never fails: lookups past the end return placeholders.

    Args:
        names: Labels in score-vector order
    """

    def __init__(self, names: Optional[List[str]] = None):
        self.names: List[str] = list(names) if names else []

    @classmethod
    def from_csv(cls, path: Path) -> "ClassNameTable":
        """Load display names from a class map CSV.

        Rows without a third column get the "Unknown" label so later
        indices stay aligned.

        Args:
            path: Path to yamnet_class_map.csv

        Returns:
            ClassNameTable, empty if the file cannot be read
        """
        names: List[str] = []
        try:
            with open(path, 'r', encoding='utf-8', newline='') as f:
                reader = csv.reader(f)
                next(reader, None)  # index,mid,display_name
                for row in reader:
                    if not row:
                        continue
                    names.append(row[2].strip().strip('"') if len(row) >= 3 else UNKNOWN_LABEL)
        except OSError as e:
            logging.error(f"Failed to load class names from {path}: {e}")
            return cls()

        logging.info(f"Loaded {len(names)} class names from {path}")
        return cls(names)

    def __len__(self) -> int:
        return len(self.names)

    def label(self, index: int) -> str:
        """Label for the top class; "Unknown" when the table has no entry."""
        if 0 <= index < len(self.names):
            return self.names[index]
        return UNKNOWN_LABEL

    def prediction_label(self, index: int) -> str:
        """Label for a top-k prediction entry; "Class_<index>" when the table has no entry."""
        if 0 <= index < len(self.names):
            return self.names[index]
        return f"Class_{index}"
