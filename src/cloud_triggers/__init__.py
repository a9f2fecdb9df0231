"""cloud-triggers.

Declare Cloud Functions style triggers in Python and get:
- a deployment manifest (`functions.yaml`), from source or from the live registry
- a FastAPI app that routes HTTP requests and CloudEvents to the handlers
"""

__version__ = "0.1.0"

from cloud_triggers.events import (
    AuthBlockingEvent,
    CallableRequest,
    CloudEvent,
    FunctionsErrorCode,
    HttpsError,
    ScheduledEvent,
    TaskRequest,
)
from cloud_triggers.namespaces import Firebase
from cloud_triggers.params import (
    define_boolean,
    define_float,
    define_int,
    define_json_secret,
    define_list,
    define_secret,
    define_string,
)

__all__ = [
    "__version__",
    "AuthBlockingEvent",
    "CallableRequest",
    "CloudEvent",
    "Firebase",
    "FunctionsErrorCode",
    "HttpsError",
    "ScheduledEvent",
    "TaskRequest",
    "define_boolean",
    "define_float",
    "define_int",
    "define_json_secret",
    "define_list",
    "define_secret",
    "define_string",
]
