# obstacle_alert/classes/class_table.py

import logging
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

UNKNOWN_LABEL = "unknown obstacle"

# Output classes of DeepLabV3 trained on PASCAL VOC 2012
PASCAL_VOC_CLASSES = (
    "background",
    "aeroplane",
    "bicycle",
    "bird",
    "boat",
    "bottle",
    "bus",
    "car",
    "cat",
    "chair",
    "cow",
    "dining table",
    "dog",
    "horse",
    "motorbike",
    "person",
    "potted plant",
    "sheep",
    "sofa",
    "train",
    "tv monitor",
)


class ClassTable:
    """
    Immutable mapping from small integer class ids to labels.

    Ids run from 0 to ``len(table) - 1``. Ids outside that range, and gaps
    left when building from a sparse mapping, resolve to ``UNKNOWN_LABEL``.
    Instances are safe to share between threads.
    """

    __slots__ = ('_labels',)

    def __init__(self, labels: Iterable[Optional[str]]):
        """
        Initialize the class table.

        Args:
            labels: Labels indexed by class id; ``None`` marks an unused id
        """
        if isinstance(labels, str):
            raise ValueError(f"Class table needs a sequence of labels, got the string {labels!r}")
        labels = tuple(None if label is None else str(label) for label in labels)
        if not labels:
            raise ValueError("Class table needs at least one label")
        object.__setattr__(self, '_labels', labels)

    def __setattr__(self, name, value):
        raise AttributeError("ClassTable is immutable")

    @classmethod
    def from_mapping(cls, mapping: Mapping[int, str]) -> 'ClassTable':
        """
        Build a table from an ``{id: label}`` mapping.

        Args:
            mapping: Non-negative integer ids to labels

        Returns:
            ClassTable sized to the largest id
        """
        if not mapping:
            raise ValueError("Class mapping is empty")

        ids = [int(class_id) for class_id in mapping]
        if min(ids) < 0:
            raise ValueError(f"Class ids must be non-negative, got {min(ids)}")

        labels = [None] * (max(ids) + 1)
        for class_id, label in mapping.items():
            labels[int(class_id)] = label
        return cls(labels)

    @classmethod
    def from_config(cls, config: Optional[Dict]) -> 'ClassTable':
        """
        Build a table from the ``classes`` section of a configuration.

        Accepts ``{'labels': [...]}`` or ``{'mapping': {id: label}}``. An empty
        or missing section gives the PASCAL VOC table.
        """
        config = config or {}
        if 'labels' in config:
            return cls(config['labels'])
        if 'mapping' in config:
            return cls.from_mapping(config['mapping'])
        return default_class_table()

    @classmethod
    def from_yaml(cls, path: str) -> 'ClassTable':
        """
        Load a table from a YAML file.

        The file holds either a list of labels or a mapping with a
        ``labels``/``mapping`` key.
        """
        with open(path, "r") as f:
            content = yaml.safe_load(f)

        logger.info(f"Loaded class table from {path}")
        if isinstance(content, list):
            return cls(content)
        if isinstance(content, dict):
            return cls.from_config(content)
        raise ValueError(f"Unsupported class table format in {path}")

    @property
    def labels(self) -> Tuple[Optional[str], ...]:
        return self._labels

    def lookup(self, class_id: int) -> str:
        """
        Return the label for a class id.

        Args:
            class_id: Class id read from a segmentation mask

        Returns:
            The label, or ``UNKNOWN_LABEL`` if the id is not in the table
        """
        if 0 <= class_id < len(self._labels):
            label = self._labels[class_id]
            if label is not None:
                return label
        return UNKNOWN_LABEL

    def __contains__(self, class_id) -> bool:
        return 0 <= class_id < len(self._labels) and self._labels[class_id] is not None

    def __len__(self) -> int:
        return len(self._labels)

    def __iter__(self) -> Iterator[Tuple[int, str]]:
        for class_id, label in enumerate(self._labels):
            if label is not None:
                yield class_id, label

    def __eq__(self, other):
        if not isinstance(other, ClassTable):
            return NotImplemented
        return self._labels == other._labels

    def __hash__(self):
        return hash(self._labels)

    def __repr__(self):
        return f"ClassTable(size={len(self._labels)})"


_DEFAULT_TABLE = ClassTable(PASCAL_VOC_CLASSES)


def default_class_table() -> ClassTable:
    """Return the shared PASCAL VOC class table."""
    return _DEFAULT_TABLE
