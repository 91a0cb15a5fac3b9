"""
Keyword index for the Nursing Knowledge Chatbot

The keyword index is a single stored JSON object mapping a keyword to either a
knowledge document id or a department marker of the form ``Department:<code>``.
This module parses that object and resolves free-text queries against it.
"""

import json
import logging
from typing import Dict, List, Mapping, Optional, Tuple

from nursebot.models import DepartmentRef, DocumentRef, KeywordSearchResponse, TargetRef

# Configure logging
logger = logging.getLogger(__name__)

DEPARTMENT_MARKER = "Department:"

MATCH_POLICIES = ("longest", "insertion")


def parse_target(value: str) -> TargetRef:
    """Turn a stored index value into a typed target reference."""
    if value.startswith(DEPARTMENT_MARKER):
        return DepartmentRef(department_code=value[len(DEPARTMENT_MARKER):])
    return DocumentRef(document_id=value)


def format_target(target: TargetRef) -> str:
    """Inverse of :func:`parse_target`."""
    if isinstance(target, DepartmentRef):
        return f"{DEPARTMENT_MARKER}{target.department_code}"
    return target.document_id


class KeywordIndex:
    """In-memory view over one serialized keyword index."""

    def __init__(self, mapping: Mapping[str, str], match_policy: str = "longest"):
        """
        Build the index view.

        Args:
            mapping: Raw keyword -> target mapping, in insertion order
            match_policy: Tie-break for substring matches, "longest" or "insertion"
        """
        if match_policy not in MATCH_POLICIES:
            raise ValueError(f"Unknown keyword match policy: {match_policy}")

        self.match_policy = match_policy
        self._raw: Dict[str, str] = dict(mapping)
        self._entries: List[Tuple[str, TargetRef]] = [
            (keyword, parse_target(value)) for keyword, value in self._raw.items()
        ]
        self._scan_order = self._build_scan_order()

    @classmethod
    def from_json(cls, raw: str, match_policy: str = "longest") -> "KeywordIndex":
        """
        Parse the stored JSON form of the index.

        Raises:
            ValueError: If the payload is not a flat string -> string object
        """
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("Keyword index must be a JSON object")
        for key, value in data.items():
            if not isinstance(value, str):
                raise ValueError(f"Keyword index value for {key!r} is not a string")
        return cls(data, match_policy=match_policy)

    def _build_scan_order(self) -> List[Tuple[str, str]]:
        """Lowercased (keyword, document id) pairs in the order substring matching tries them."""
        candidates = [
            (position, keyword.lower(), target.document_id)
            for position, (keyword, target) in enumerate(self._entries)
            if isinstance(target, DocumentRef) and keyword
        ]
        if self.match_policy == "longest":
            candidates.sort(key=lambda item: (-len(item[1]), item[1], item[0]))
        return [(keyword, document_id) for _, keyword, document_id in candidates]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, keyword: str) -> bool:
        return keyword in self._raw

    def resolve(self, query: str) -> Optional[TargetRef]:
        """
        Resolve a free-text query to a target.

        An exact, case-insensitive match on a department keyword wins outright.
        Otherwise the first document keyword contained in the query, in scan
        order, is returned.

        Args:
            query: Raw user text

        Returns:
            The matched target or None
        """
        normalized = query.strip().lower()
        if not normalized:
            return None

        for keyword, target in self._entries:
            if isinstance(target, DepartmentRef) and keyword.lower() == normalized:
                return target

        for keyword, document_id in self._scan_order:
            if keyword in normalized:
                return DocumentRef(document_id=document_id)

        return None

    def search(self, query: str) -> KeywordSearchResponse:
        """
        Bidirectional diagnostic search.

        Departments match when the keyword equals the query or the query
        contains it. Document keywords additionally match when the keyword
        contains the query.
        """
        lowered = query.lower()
        result = KeywordSearchResponse(query=query)

        for keyword, target in self._entries:
            key = keyword.lower()
            if isinstance(target, DepartmentRef):
                if key == lowered or key in lowered:
                    result.departments[keyword] = target.department_code
            elif key == lowered or lowered in key or key in lowered:
                result.matches[keyword] = target.document_id

        return result

    def sample(self, limit: int = 10) -> Dict[str, str]:
        """First ``limit`` raw entries in insertion order."""
        return dict(list(self._raw.items())[:limit])

    def to_dict(self) -> Dict[str, str]:
        return dict(self._raw)
