"""
Hierarchy Root Extractor

Hierarchy update requests carry a map of node key -> node descriptor at
request.data.hierarchy. The content authorized for the update is the node
whose descriptor has root set to true.
"""

import logging
from typing import Any, Mapping, Optional

from middleware.errors import PipelineError
from models.messages import ErrorKind
from models.request_context import PipelineRequest

logger = logging.getLogger(__name__)

HIERARCHY_PATH = ("request", "data", "hierarchy")
ROOT_FLAG = "root"


def find_hierarchy(body: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
    """Return the mapping at request.data.hierarchy, or None if any level is missing."""
    node: Any = body
    for key in HIERARCHY_PATH:
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
    return node if isinstance(node, Mapping) else None


def find_root_key(hierarchy: Mapping[str, Any]) -> Optional[str]:
    """Key of the first node flagged as root, None if there is none."""
    for key, node in hierarchy.items():
        if isinstance(node, Mapping) and node.get(ROOT_FLAG) is True:
            return key
    return None


def extract_hierarchy_root(pipeline: PipelineRequest) -> str:
    """
    Locate the content id a hierarchy update must be authorized against.

    Raises:
        PipelineError: HIERARCHY_MISSING if request.data.hierarchy is absent,
            HIERARCHY_ROOT_NOT_FOUND if no node is flagged as root
    """
    context = pipeline.context

    hierarchy = find_hierarchy(pipeline.body)
    if hierarchy is None:
        logger.error(
            f"Error due to required params are missing: correlation_id={context.correlation_id}, "
            f"request={pipeline.body.get('request')}"
        )
        raise PipelineError(ErrorKind.HIERARCHY_MISSING, context)

    root_key = find_root_key(hierarchy)
    if root_key is None:
        logger.error(
            f"Hierarchy has no root node: correlation_id={context.correlation_id}, "
            f"nodes={list(hierarchy.keys())}"
        )
        raise PipelineError(ErrorKind.HIERARCHY_ROOT_NOT_FOUND, context)

    return root_key
