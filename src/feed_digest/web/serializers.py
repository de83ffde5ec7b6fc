"""
Serializer helpers for API responses.
"""

from typing import Any, Optional

from pydantic import ValidationError

from feed_digest.core.fetcher import FetchStats
from feed_digest.core.scheduler import DigestScheduler
from feed_digest.models import Item, Source


def source_to_dict(source: Source) -> dict:
    """Convert a Source to its camelCase record.

    Args:
        source: Source instance

    Returns:
        Dictionary representation
    """
    return source.to_record()


def preview_item_to_dict(item: Item) -> dict:
    """Convert a previewed Item to the fields shown to the user."""
    return {
        "title": item.title,
        "link": item.link,
        "summary": item.summary,
    }


def fetch_stats_to_dict(stats: FetchStats) -> dict:
    """Convert fetcher counters to a dictionary."""
    return {
        "total_requests": stats.total_requests,
        "successful_fetches": stats.successful_fetches,
        "failed_fetches": stats.failed_fetches,
        "success_rate": round(stats.success_rate, 3),
        "errors_by_status": dict(stats.errors_by_status),
    }


def scheduler_to_dict(scheduler: Optional[DigestScheduler]) -> dict:
    """Describe the scheduler and its run job.

    Args:
        scheduler: Scheduler attached to the app, or None when serving without one

    Returns:
        Dictionary with running state, counters and the run job
    """
    if scheduler is None:
        return {"is_running": False, "job": None}

    stats = scheduler.get_stats()
    status = scheduler.get_job_status()
    job = None
    if status is not None:
        job = {
            "id": status.job_id,
            "name": status.name,
            "next_run_time": status.next_run_time.isoformat() if status.next_run_time else None,
            "is_active": status.is_active,
            "last_result": status.last_result.to_dict() if status.last_result else None,
            "last_error": status.last_error,
        }
    return {
        "is_running": scheduler.is_running(),
        "total_executions": stats.total_executions,
        "successful_executions": stats.successful_executions,
        "failed_executions": stats.failed_executions,
        "skipped_executions": stats.skipped_executions,
        "uptime_seconds": stats.uptime_seconds,
        "job": job,
    }


def validation_error_message(error: ValidationError) -> str:
    """Flatten a pydantic ValidationError into one line.

    Args:
        error: Validation error raised by a request schema

    Returns:
        Messages of all errors, "field: message" where a field is known
    """
    messages = []
    for detail in error.errors():
        message = str(detail.get("msg", "")).removeprefix("Value error, ")
        location = ".".join(str(part) for part in detail.get("loc", ()))
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages)


def api_response(
    success: bool = True,
    data: Any = None,
    message: str = None,
    error: str = None,
    status: int = 200,
) -> tuple:
    """Standard API response format.

    Args:
        success: Whether the request was successful
        data: Response data
        message: Success message
        error: Error message
        status: HTTP status code

    Returns:
        Flask response with JSON data
    """
    from flask import jsonify

    response_data = {
        "success": success,
        "data": data,
        "message": message,
        "error": error,
    }
    return jsonify(response_data), status
