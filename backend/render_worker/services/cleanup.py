"""
Temporary file cleanup
"""

import os
from typing import List, Optional, Union

from render_worker.services.observability import logger

PathLike = Union[str, "os.PathLike[str]"]


def remove_quietly(*paths: Optional[PathLike]) -> List[str]:
    """
    Delete local files, ignoring ones that are already gone

    Deletion errors are logged and swallowed so they never replace the
    pipeline's real result.

    Returns:
        Paths that were actually removed
    """
    removed = []
    for path in paths:
        if not path:
            continue
        try:
            os.remove(path)
            removed.append(str(path))
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning("cleanup_failed", path=str(path), error=str(e))
    return removed
