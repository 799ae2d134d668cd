import base64, json, requests
from requests import Response

from railfare.src.constants import (
    OPENOBSERVE_HOST,
    OPENOBSERVE_ORG,
    OPENOBSERVE_PASSWORD,
    OPENOBSERVE_PORT,
    OPENOBSERVE_PROTOCOL,
    OPENOBSERVE_STREAM,
    OPENOBSERVE_USERNAME,
)

credentials = base64.b64encode(
    f"{OPENOBSERVE_USERNAME}:{OPENOBSERVE_PASSWORD}".encode("utf-8")
).decode("utf-8")
headers = {"Content-type": "application/json", "Authorization": f"Basic {credentials}"}

openobserveURL = (
    f"{OPENOBSERVE_PROTOCOL}://{OPENOBSERVE_HOST}:{OPENOBSERVE_PORT}"
    f"/api/{OPENOBSERVE_ORG}/{OPENOBSERVE_STREAM}/_json"
)


def logEvent(eventData: dict) -> Response:
    """
    Ship one event to the OpenObserve stream of the service.

    Args:
        eventData (dict): Flat JSON-serializable event, for example
            {"_method": "POST", "_path": "/tariff/ac/range", "coach_id": 3}

    Returns:
        requests.Response: Response of the ingestion endpoint.
    """
    return requests.post(
        openobserveURL, headers=headers, data=json.dumps(eventData, default=str)
    )
