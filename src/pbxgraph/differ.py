"""
Structural diff of tree snapshots.

The result only contains what differs. Dictionaries are compared key by key;
lists are compared as ordered multisets, so a list that gained one element
reports just that element instead of every shifted position.
"""
from typing import Any, Dict, List, Optional, Union
import logging

from pbxgraph.graph import ObjectGraph

logger = logging.getLogger(__name__)


def diff(
    value_1: Any,
    value_2: Any,
    key_1: str = 'value_1',
    key_2: str = 'value_2',
    id_key: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """Differences between two values; None when they are equal.

    Args:
        key_1: Key under which values only present in `value_1` are reported.
        key_2: Key under which values only present in `value_2` are reported.
        id_key: Dictionary key identifying list elements. A removed and an
                added element sharing its value are diffed against each other
                and reported under `"[<index in value_2>]"`.
    """
    if isinstance(value_1, dict) and isinstance(value_2, dict):
        return _diff_dicts(value_1, value_2, key_1, key_2, id_key)
    if isinstance(value_1, list) and isinstance(value_2, list):
        return _diff_lists(value_1, value_2, key_1, key_2, id_key)
    if value_1 == value_2:
        return None
    return {key_1: value_1, key_2: value_2}


def _diff_dicts(value_1, value_2, key_1, key_2, id_key) -> Optional[Dict[str, Any]]:
    result = {}
    for key, item in value_1.items():
        if key not in value_2:
            result[key] = {key_1: item}
            continue
        sub_diff = diff(item, value_2[key], key_1, key_2, id_key)
        if sub_diff is not None:
            result[key] = sub_diff
    for key, item in value_2.items():
        if key not in value_1:
            result[key] = {key_2: item}
    return result or None


def _unmatched(items: List[Any], others: List[Any]) -> List[Any]:
    """Elements of `items` left over after pairing equal elements of `others`."""
    pool = list(others)
    leftover = []
    for item in items:
        for index, other in enumerate(pool):
            if other == item:
                del pool[index]
                break
        else:
            leftover.append(item)
    return leftover


def _label(item: Any, id_key: Optional[str]) -> Any:
    if id_key is not None and isinstance(item, dict) and id_key in item:
        return item[id_key]
    return item


def _diff_lists(value_1, value_2, key_1, key_2, id_key) -> Optional[Dict[str, Any]]:
    if value_1 == value_2:
        return None
    removed = _unmatched(value_1, value_2)
    added = _unmatched(value_2, value_1)
    if not removed and not added:
        return {'order': {
            key_1: [_label(item, id_key) for item in value_1],
            key_2: [_label(item, id_key) for item in value_2],
        }}

    result: Dict[str, Any] = {}
    if id_key is not None:
        for item in list(added):
            if not isinstance(item, dict) or id_key not in item:
                continue
            match = next(
                (other for other in removed
                 if isinstance(other, dict) and other.get(id_key) == item[id_key]),
                None,
            )
            if match is None:
                continue
            removed = [other for other in removed if other is not match]
            added = [other for other in added if other is not item]
            index = next(position for position, other in enumerate(value_2) if other is item)
            result[f"[{index}]"] = diff(match, item, key_1, key_2, id_key)
    if removed:
        result[key_1] = removed
    if added:
        result[key_2] = added
    return result


def project_diff(
    project_1: Union[ObjectGraph, Dict[str, Any]],
    project_2: Union[ObjectGraph, Dict[str, Any]],
    key_1: str = 'project_1',
    key_2: str = 'project_2',
) -> Optional[Dict[str, Any]]:
    """Diff two graphs (or their tree snapshots), pairing nodes by display name."""
    if isinstance(project_1, ObjectGraph):
        project_1 = project_1.to_tree_hash()
    if isinstance(project_2, ObjectGraph):
        project_2 = project_2.to_tree_hash()
    result = diff(project_1, project_2, key_1, key_2, id_key='displayName')
    logger.debug(f"Project diff {'found changes' if result else 'is empty'}")
    return result
