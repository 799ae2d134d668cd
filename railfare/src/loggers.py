from railfare.src import openobserve
from railfare.src.schemas import RequestInfo


def logEvent(requestInfo: RequestInfo, data: dict) -> None:
    """
    Record a mutating API operation in OpenObserve.

    Args:
        requestInfo (RequestInfo): Method and path of the current request.
        data (dict): Event-specific details, typically the affected row.

    Notes:
        - `_method` and `_path` are attached to every event.
        - Keys of `data` win over the request keys on collision.
    """
    logDetails = {
        "_method": requestInfo.method,
        "_path": requestInfo.path,
    }
    logDetails.update(data)
    openobserve.logEvent(logDetails)
