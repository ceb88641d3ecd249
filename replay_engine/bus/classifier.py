"""
Outcome classification of publish results.

Binary and non-retrying: any failed entry fails the whole publish.
"""

from typing import Any, Dict, List

from ..core.errors import PartialPublishFailure
from ..core.events import PublishResult
from ..core.state import Outcome


def classify(result: PublishResult) -> Outcome:
    """FAILED iff result.failed_entry_count > 0, SUCCEEDED otherwise."""
    if result.failed_entry_count > 0:
        return Outcome.FAILED
    return Outcome.SUCCEEDED


def failed_entries(result: PublishResult) -> List[Dict[str, Any]]:
    """
    Details of the failed entries, with their position in the request.

    When the bus reports a failed count without per-entry detail, a single
    placeholder entry is returned so the failure is never silent.
    """
    details = [
        dict(entry.to_dict(), index=i)
        for i, entry in enumerate(result.entries)
        if entry.failed
    ]
    if not details and result.failed_entry_count > 0:
        details.append({
            "index": None,
            "event_id": None,
            "error_code": "Unknown",
            "error_message": f"{result.failed_entry_count} entries failed without detail",
        })
    return details


def ensure_published(result: PublishResult) -> PublishResult:
    """
    Raises:
        PartialPublishFailure: If any entry failed
    """
    if classify(result) is Outcome.FAILED:
        raise PartialPublishFailure(
            f"{result.failed_entry_count} of {result.total_entry_count} entries failed",
            failed_entries(result),
        )
    return result
